"""
Integration Tests Package

End-to-end pipeline runs against fake upstreams.

TEST AXIOMS:
=============
1. No network: upstream sources and inference go through fakes
2. No real sleeping: every wait advances a fake clock
3. Partial failure is reported, never raised
"""
