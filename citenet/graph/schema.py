# citenet/graph/schema.py

from enum import Enum


class NodeShape(str, Enum):
    """Role of an article node in the citation network."""
    SEED = "seed"
    INPUT = "input"
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class EdgeType(str, Enum):
    # Article -> article citation edge (u cites v)
    CITES = "CITES"

    # Author <-> author co-authorship edge
    COAUTHOR = "COAUTHOR"


class NodeColor(str, Enum):
    """Attribute used to group citation network nodes for coloring."""
    YEAR = "year"
    JOURNAL = "journal"
