"""
vuln_sync - resumable NVD/OSV vulnerability database synchronization
"""

__version__ = "1.0.0"
