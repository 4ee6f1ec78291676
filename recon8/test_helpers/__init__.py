"""
Helpers for testing recon8 controllers
"""
