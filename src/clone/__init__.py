"""Out-of-band clone workers.

This package moves an existing volume's content to a new volume through
a cooperating source and target worker pair.
"""
