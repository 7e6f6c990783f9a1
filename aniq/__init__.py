"""aniq: a terminal quiz game about anime characters.

Questions are assembled from the AniList GraphQL API behind an adaptive
rate governor that keeps the client inside the server's request budget.
"""

__version__ = "0.3.0"
