"""
Services: credentials, password reset, invoices and external providers
"""
