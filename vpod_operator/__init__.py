"""
kopf operator that runs the pod syncer against a virtual and a physical
API server.

Handlers live in ``vpod_operator.main``; import it (or use ``podsync run``)
to register them with kopf.
"""
