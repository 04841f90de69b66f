"""
DroidSched - scheduled backup and restore of Android applications over ADB.

Drives a rooted Android device from a Linux host:
- Inventory of installed and previously backed up applications
- Policy-based selection (all, user, system, new or updated apps)
- Per-app APK and data backup/restore through a root shell
- Wake lock and notification handling for unattended scheduled runs
"""

__version__ = "0.1.0"
__author__ = "DroidSched Contributors"
