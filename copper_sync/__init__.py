"""
copper_sync - Copper CRM to MailerLite contact synchronization

Pushes a cohort of Copper contacts, chosen by tag or by id, into a
MailerLite group that is found or created by name.
"""

__version__ = "0.1.0"
