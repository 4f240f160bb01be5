# =======================================================================================
# roomtrack/__init__.py - Package Initialization
# =======================================================================================
"""
Room Occupancy & Temporary Group Merge Service

Tracks which students are in which room from RFID tag reads, keeps a
visit ledger per room and student, and lets staff temporarily merge two
supervised rooms into one combined group.
"""

__version__ = "1.0.0"
