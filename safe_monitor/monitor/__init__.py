"""
Safe transaction monitor.

Reconciles pending Safe transactions against the seen-transaction store and
dispatches de-duplicated notifications, one fleet pass at a time.
"""
