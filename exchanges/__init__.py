"""
Venue integrations for the order pipeline.
"""
