"""
AdaTopo Healing
===============

Incremental repair of the topology after an agent leaves or fails.

- Removal: former neighbours that dropped below ``min_connections`` are
  topped back up from ``optimal_connections``.
- Failure: the failed node stays in place with its edges; each neighbour
  with spare capacity gains one alternative connection that avoids it.

Healing never raises: when no candidates exist the node is left
under-connected and a debug line is logged.
"""

from __future__ import annotations

import logging

from adatopo.graph import TopologyGraph, TopologyNode
from adatopo.models import TopologyConfiguration
from adatopo.scoring import ConnectionScorer

logger = logging.getLogger("adatopo.healing")


class HealingController:
    def __init__(self, graph: TopologyGraph, scorer: ConnectionScorer):
        self.graph = graph
        self.scorer = scorer

    def _link(self, node: TopologyNode, target_id: str) -> bool:
        target = self.graph.get(target_id)
        if target is None or self.graph.has_connection(node.id, target_id):
            return False
        return self.graph.add_connection(self.scorer.make_connection(node.agent, target.agent))

    def heal_after_removal(
        self,
        removed_id: str,
        former_neighbors: list[str],
        config: TopologyConfiguration,
    ) -> int:
        """Restore ``min_connections`` on nodes that lost an edge to ``removed_id``.

        Returns:
            Number of connections created.
        """
        if not config.healing_enabled:
            return 0

        created = 0
        for agent_id in former_neighbors:
            node = self.graph.get(agent_id)
            if node is None or node.degree >= config.min_connections:
                continue

            candidates = self.scorer.optimal_connections(
                node.agent,
                self.graph,
                config.type,
                config.min_connections,
                config.max_connections,
                exclude=[removed_id, *self.graph.neighbors(agent_id)],
            )
            for target_id in candidates:
                if node.degree >= config.min_connections:
                    break
                if self._link(node, target_id):
                    created += 1

            if node.degree < config.min_connections:
                logger.debug(
                    f"Healing: {agent_id} remains at degree {node.degree} "
                    f"(min {config.min_connections}), no further candidates"
                )

        if created:
            logger.info(f"Healed removal of {removed_id}: {created} new connections")
        return created

    def heal_after_failure(self, failed_id: str, config: TopologyConfiguration) -> int:
        """Give each neighbour of ``failed_id`` one alternative connection if it has room.

        Returns:
            Number of connections created.
        """
        if not config.healing_enabled or failed_id not in self.graph:
            return 0

        created = 0
        for agent_id in self.graph.neighbors(failed_id):
            node = self.graph.get(agent_id)
            if node is None or node.degree >= config.max_connections:
                continue

            current = set(self.graph.neighbors(agent_id))
            alternatives = self.scorer.optimal_connections(
                node.agent,
                self.graph,
                config.type,
                config.min_connections,
                config.max_connections,
                exclude=[failed_id, *current],
            )
            if alternatives and self._link(node, alternatives[0]):
                created += 1

        if created:
            logger.info(f"Healed failure of {failed_id}: {created} bypass connections")
        return created
