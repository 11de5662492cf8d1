"""
Services module.

Order pipeline (pricing, persistence, assembly, status transitions) and the
notification channel.
"""
