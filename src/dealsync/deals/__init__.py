"""Deal generation module -- decision matrix, outcome applier and generator.

Maps classified marketplace events, a license's hosting type and the
license's current CRM deals to exactly one CRM mutation per event.
"""
