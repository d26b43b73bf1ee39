"""
mbs_selector.api — client side of the recommendation service contract.

Modules:
  analysis_client — AnalysisClient (httpx) for /api/v1/analyze and the
                    /health, /ready, /live probes; mbs_online_url().
  session         — AnalysisSession: single in-flight request, stale-result
                    discard, cancel, one explicit retry.
"""
