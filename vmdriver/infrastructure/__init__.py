"""
Hypervisor infrastructure providers for vmdriver
"""
