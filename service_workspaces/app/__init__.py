"""
Workspaces Service package for the workspace access layer.

The service sits between a UI and an earthstar document backend. It
decides when the workspace list is fetched, when a cached copy may be
shown, and when a write must invalidate and refetch it.

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.caching: Named query cache with fetch coalescing.
- app.mutations: Mutation state machine, sync and post controllers.
- app.adapters: Backend collaborators (GraphQL, in-memory) and identities.
- app.domain: Workspace data models.
- app.views: Workspace list view model.
"""
