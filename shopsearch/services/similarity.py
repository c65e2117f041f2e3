"""Related-product lookup by category, tags and price band."""

import logging
from uuid import UUID

from shopsearch.core.config import settings
from shopsearch.core.exceptions import SearchNotFoundError
from shopsearch.schemas.search import SearchResult
from shopsearch.services.catalog.store import CatalogStore
from shopsearch.services.ordering import SIMILAR_ORDERING
from shopsearch.services.predicates import build_similarity_predicate
from shopsearch.services.relevance import to_search_result

logger = logging.getLogger(__name__)


class SimilarityEngine:
    """Finds products related to a reference product."""

    def __init__(self, catalog: CatalogStore) -> None:
        self.catalog = catalog

    async def find_similar(
        self,
        product_id: UUID,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Find other active products sharing the category, a tag, or a price band.

        Args:
            product_id: Reference product
            limit: Max results (defaults to ``similar_default_limit``)

        Returns:
            Related products, best rated first. Never includes the reference.

        Raises:
            SearchNotFoundError: The reference product does not exist.
        """
        limit = settings.similar_default_limit if limit is None else limit

        reference = await self.catalog.get_product(product_id)
        if reference is None:
            raise SearchNotFoundError("Product not found")

        products = await self.catalog.find_products(
            build_similarity_predicate(reference),
            SIMILAR_ORDERING,
            limit=limit,
        )
        logger.debug("Found %d products similar to %s", len(products), product_id)

        return [to_search_result(p) for p in products if p.id != product_id]
