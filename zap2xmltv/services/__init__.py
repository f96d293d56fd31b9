"""
Services package for zap2xmltv

This package contains the guide assembly pipeline and its components.
"""
from zap2xmltv.services.guide_pipeline_service import GuidePipeline, build_guide
from zap2xmltv.services.provider_service import lookup_providers, format_provider_table
from zap2xmltv.services.scheduler_service import guide_scheduler

__all__ = [
    'GuidePipeline',
    'build_guide',
    'lookup_providers',
    'format_provider_table',
    'guide_scheduler',
]
