"""
Location engine services package.
"""
