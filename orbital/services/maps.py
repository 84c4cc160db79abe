"""
Map registry service.

Keeps one OrbitalEngine per open map. Engines never share state; the
registry only routes requests to the right one and detaches engines when
their map is closed or the service shuts down.
"""

import logging
import uuid
from typing import Dict, Iterable, Optional

from orbital.config import Config, load_config
from orbital.schemas.hierarchy import FolderItem, Viewport
from orbital.services.engine import FrameCallback, OrbitalEngine

logger = logging.getLogger(__name__)


class MapService:
    """Registry of live orbital maps keyed by map id"""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.maps: Dict[str, OrbitalEngine] = {}

    def create_map(
        self,
        items: Iterable[FolderItem],
        viewport: Optional[Viewport] = None,
        expanded_ids: Iterable[str] = (),
        on_frame: Optional[FrameCallback] = None
    ) -> OrbitalEngine:
        """
        Create and lay out a new map.

        Args:
            items: Hierarchy snapshot
            viewport: Initial viewport (defaults from server config)
            expanded_ids: Initially expanded node ids
            on_frame: Frame callback for the engine's loop

        Returns:
            OrbitalEngine: The new engine, already planned
        """
        map_id = uuid.uuid4().hex
        engine = OrbitalEngine(self.config, map_id=map_id, on_frame=on_frame)
        engine.expanded_ids = set(expanded_ids)
        engine.set_hierarchy(items)

        if viewport is None:
            viewport = Viewport(width=self.config.server.default_width, height=self.config.server.default_height)
        engine.set_viewport(viewport.width, viewport.height)

        self.maps[map_id] = engine
        logger.info(f"Map created: {map_id} ({len(engine.tree)} nodes, {len(engine.visible)} visible)")
        return engine

    def get_map(self, map_id: str) -> Optional[OrbitalEngine]:
        return self.maps.get(map_id)

    def remove_map(self, map_id: str) -> bool:
        """
        Detach and forget a map.

        Returns:
            True if the map was removed, False if not found
        """
        engine = self.maps.pop(map_id, None)
        if engine is None:
            return False
        engine.detach()
        logger.info(f"Map removed: {map_id}")
        return True

    def shutdown(self):
        """Detach every map"""
        for map_id in list(self.maps):
            self.remove_map(map_id)


# Global map service instance
map_service = MapService(load_config())
