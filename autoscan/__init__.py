"""
Resumable auto-scan loop turning source documents into card drafts page by page.
"""

from .config import RetryConfig, ScanConfig
from .models import AutoScanState, AutoScanStats, ScanResult, ScanStatus, SkippedPage
from .scan_controller import ScanAlreadyRunningError, ScanController

__all__ = [
    'RetryConfig',
    'ScanConfig',
    'AutoScanState',
    'AutoScanStats',
    'ScanResult',
    'ScanStatus',
    'SkippedPage',
    'ScanAlreadyRunningError',
    'ScanController'
]
