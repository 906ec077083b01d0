"""
Test suite for the pod syncer.

Focus areas:
- Create path decoration and gating
- Steady state branch priority
- Node binding convergence
- Work queue guarantees
"""
