"""
Shared, cross-cutting code for the API.

`core/` should contain small building blocks that multiple features use
(settings, logging, the remote PostgREST client, query/mutation helpers).
Keep entity-specific queries and business logic in the corresponding feature
package (e.g. `items/`).
"""
