import django.dispatch

# Sent inside the cast transaction with ``vote``; receivers share its fate.
vote_recorded = django.dispatch.Signal()

# Sent once the cast transaction has committed, with ``vote``.
vote_committed = django.dispatch.Signal()
