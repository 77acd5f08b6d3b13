"""
Wind-turbine records and their derived display metrics.
"""
