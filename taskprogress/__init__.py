"""
taskprogress - progress reconstruction for Proxmox VE cluster tasks.
"""

__version__ = "0.2.0"
