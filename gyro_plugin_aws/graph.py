from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator, List, Optional, Type, TypeVar

import networkx
from prometheus_client import Summary

if TYPE_CHECKING:
    from gyro_plugin_aws.resource.base import AwsResource

log = logging.getLogger("gyro.plugins.aws")

metrics_graph_find_by_id = Summary("gyro_graph_find_by_id_seconds", "Time it took the Graph find_by_id() method")

T = TypeVar("T")


class Graph(networkx.DiGraph):  # type: ignore
    """
    In memory graph of resources.
    Nodes are resources, an edge from a to b means: a references b by id.
    References are weak: they are only used to look up resources, never to own them.
    """

    def add_resource(self, resource: AwsResource) -> None:
        self.add_node(resource)
        # the resource uses the graph to resolve references
        resource._graph = self

    def add_reference(self, source: AwsResource, target: AwsResource) -> None:
        for node in (source, target):
            if node not in self:
                self.add_resource(node)
        self.add_edge(source, target)

    def resources(self, clazz: Type[T]) -> Iterator[T]:
        for node in self.nodes:
            if isinstance(node, clazz):
                yield node

    @metrics_graph_find_by_id.time()
    def find_by_id(self, clazz: Type[T], resource_id: Any) -> Optional[T]:
        """Return the first resource of given class with given id"""
        if resource_id is None:
            return None
        node = next((r for r in self.resources(clazz) if getattr(r, "id", None) == resource_id), None)
        if node is None:
            log.debug(f"Found no {clazz.__name__} with id {resource_id}")
        return node

    def references(self, resource: AwsResource) -> List[AwsResource]:
        return list(self.successors(resource)) if resource in self else []
