"""Landmark-to-rig retargeting for MMD humanoid models"""

__version__ = "0.1.0"
