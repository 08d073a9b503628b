"""Multi-strategy layer coordination services.

This package contains the services that let several independently operating
strategies share one capital pool (a layer):
- Capital allocation under equal, weighted, dynamic and Kelly policies
- Pairwise signal correlation with a diversification score
- Two-phase rebalancing (plan, then versioned idempotent commit)
- Resolution of conflicting simultaneous signals on one instrument

Modules:
    allocation_engine: Capital allocation policies and position sizing
    correlation_service: Daily signal series and pairwise correlation
    diversification: Correlation strength buckets and diversification score
    rebalancer: Rebalance planning and commit
    conflict_resolver: Priority, voting and net-signal conflict resolution
    performance: Daily PnL summaries for performance-driven policies
    fetch: Parallel collaborator reads
    collaborators: Protocols for configuration, history and allocation storage
    memory_store: In-memory implementation of every collaborator protocol
    coordinator: Caller-facing facade
    errors: Custom exceptions for layer coordination
"""
