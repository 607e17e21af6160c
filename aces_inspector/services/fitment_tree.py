"""
Fitment tree builder and badness-minimizing permutation search.

A fitment group is every application for one base vehicle / part type /
position (and asset, when assets are the fitment root). Its apps are further
qualified by "fitment elements": VCdb attribute classes, Qdb qualifiers, the
manufacturer label and the asset. Splitting the group level by level in some
element order yields a tree; how coherent that tree is depends on the order.

For each ordering tried, the tree is scored for structural smells:

- overlap: apps lacking the split element sit beside apps that carry it and
  everything else they specify, so they cover the same vehicles;
- disparate: apps lacking the split element are qualified by other
  attributes the siblings do not share (accepted in disparate mode);
- spurious split: siblings split on an immaterial element (mfr label,
  asset, or qualifiers when their types are not respected) whose apps are
  otherwise identical;
- conflict: apps claiming the same vehicles with a different part,
  quantity or notes, either in one leaf or as a broader app beside the
  narrower ones it covers;
- duplicate: a leaf holding repeated identical apps.

The lowest-badness ordering wins (earliest on ties). A non-zero winner makes
the group a problem group; only its ordering is kept, and the tree is rebuilt
from it when the problem has to be explained again.
"""

import itertools
import logging
import math
from collections import Counter
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from aces_inspector.config import Settings
from aces_inspector.reference.base import ReferenceLookup
from aces_inspector.schemas.analysis import (
    AnalysisChunk,
    ChunkGroup,
    Diagnostic,
    DiagnosticCategory,
    PermutationRecord,
)
from aces_inspector.schemas.catalog import App, QdbQualifier
from aces_inspector.utils.fitment_text import app_context, qualifier_text, safe_app_context

logger = logging.getLogger(__name__)

# Elements that describe the part rather than the vehicle
IMMATERIAL_ELEMENTS = frozenset({"mfrlabel", "asset"})


class Smell(str, Enum):
    OVERLAP = "overlap"
    DISPARATE = "disparate"
    SPURIOUS_SPLIT = "spurious split"
    CONFLICT = "conflict"
    DUPLICATE = "duplicate"


# Badness per affected app
SMELL_WEIGHTS = {
    Smell.OVERLAP: 3,
    Smell.DISPARATE: 1,
    Smell.SPURIOUS_SPLIT: 2,
    Smell.CONFLICT: 3,
    Smell.DUPLICATE: 1,
}


@dataclass(frozen=True)
class TreeOptions:
    disparate_mode: bool = False
    respect_qdb_type: bool = False
    use_assets_as_fitment: bool = False
    limit: int = 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "TreeOptions":
        return cls(
            disparate_mode=settings.disparate_mode,
            respect_qdb_type=settings.respect_qdb_type,
            use_assets_as_fitment=settings.use_assets_as_fitment,
            limit=settings.tree_config_limit,
        )


@dataclass(frozen=True)
class AppProfile:
    """An app with its fitment elements and payload precomputed once per search."""

    app: App
    elements: dict
    payload: tuple  # (part, quantity, notes)

    def signature(self, exclude: frozenset, respect_qdb_type: bool) -> tuple:
        """Payload plus the vehicle elements that decide whether two apps say the same thing."""
        kept = tuple(
            sorted(
                (key, value)
                for key, value in self.elements.items()
                if key not in exclude
                and key not in IMMATERIAL_ELEMENTS
                and (respect_qdb_type or not key.startswith("qdb"))
            )
        )
        return self.payload, kept


def app_elements(app: App, options: TreeOptions, reference: ReferenceLookup | None = None) -> dict[str, tuple]:
    """Fitment elements an app carries, keyed by element class."""
    collected: dict[str, list] = {}
    for attribute in app.vcdb_attributes:
        collected.setdefault(f"vcdb:{attribute.name}", []).append(attribute.value)
    for qualifier in app.qdb_qualifiers:
        if options.respect_qdb_type:
            qualifier_type = reference.qualifier_type(qualifier.qualifier_id) if reference else ""
            key = f"qdb:{qualifier_type or 'untyped'}"
        else:
            key = "qdb"
        collected.setdefault(key, []).append((qualifier.qualifier_id, qualifier.params))
    if app.mfr_label:
        collected["mfrlabel"] = [app.mfr_label]
    if app.asset and not options.use_assets_as_fitment:
        collected["asset"] = [app.asset]
    return {key: tuple(sorted(values)) for key, values in collected.items()}


def profile_apps(
    apps: Sequence[App], options: TreeOptions, reference: ReferenceLookup | None = None
) -> list[AppProfile]:
    return [
        AppProfile(app=app, elements=app_elements(app, options, reference), payload=(app.part, app.quantity, app.notes))
        for app in apps
    ]


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@dataclass
class FitmentNode:
    """
    One node of a fitment tree. `element`/`value` is the split that produced
    the node (value None means the apps lack that element); `split` is the
    element its children were split on.
    """

    profiles: list[AppProfile]
    element: str | None = None
    value: tuple | None = None
    depth: int = 0
    split: str | None = None
    children: list["FitmentNode"] = field(default_factory=list)

    @property
    def apps(self) -> list[App]:
        return [p.app for p in self.profiles]

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def walk(self) -> Iterator["FitmentNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


def _uniform(profiles: list[AppProfile]) -> bool:
    first = profiles[0].elements
    return all(p.elements == first for p in profiles[1:])


def _grow(node: FitmentNode, remaining: Sequence[str]) -> None:
    if not node.profiles or _uniform(node.profiles):
        return
    # a level whose element nobody here carries adds nothing
    index = 0
    while index < len(remaining) and all(remaining[index] not in p.elements for p in node.profiles):
        index += 1
    if index == len(remaining):
        return

    element = remaining[index]
    rest = remaining[index + 1 :]
    buckets: dict[tuple | None, list[AppProfile]] = {}
    for profile in node.profiles:
        buckets.setdefault(profile.elements.get(element), []).append(profile)

    node.split = element
    for value, members in buckets.items():
        child = FitmentNode(profiles=members, element=element, value=value, depth=node.depth + 1)
        node.children.append(child)
        _grow(child, rest)


def build_fitment_tree(profiles: list[AppProfile], ordering: Sequence[str]) -> FitmentNode:
    """Split the group level by level in the given element order."""
    root = FitmentNode(profiles=list(profiles))
    _grow(root, list(ordering))
    return root


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    smell: Smell
    path: tuple  # ((element, value), ...) from the root to the offending node
    element: str | None
    values: tuple
    apps: tuple[App, ...]
    badness: int
    detail: str = ""


@dataclass
class TreeAssessment:
    badness: int = 0
    findings: list[Finding] = field(default_factory=list)

    def add(self, finding: Finding) -> None:
        if finding.badness > 0:
            self.badness += finding.badness
            self.findings.append(finding)


def _subtree_signature(node: FitmentNode, exclude: frozenset, respect_qdb_type: bool) -> tuple:
    return tuple(sorted(Counter(p.signature(exclude, respect_qdb_type) for p in node.profiles).items(), key=repr))


def _payload_detail(payloads: list[tuple]) -> str:
    """Which part of the payload differs: parts first, then quantities, then notes."""
    parts = list(dict.fromkeys(p[0] for p in payloads))
    if len(parts) > 1:
        return "parts " + ", ".join(parts)
    quantities = list(dict.fromkeys(p[1] for p in payloads))
    if len(quantities) > 1:
        return "quantities " + ", ".join(str(q) for q in quantities)
    return "notes"


def _score_split(node: FitmentNode, path: tuple, options: TreeOptions, assessment: TreeAssessment) -> None:
    element = node.split
    consumed = {e for e, _ in path} | {element}
    absent = [c for c in node.children if c.value is None]
    valued = [c for c in node.children if c.value is not None]

    if absent and valued:
        values = tuple(c.value for c in valued)
        siblings = [p for c in valued for p in c.profiles]
        overlap, disparate, conflict, contradicted = [], [], [], []
        for profile in absent[0].profiles:
            remaining = {key: value for key, value in profile.elements.items() if key not in consumed}
            if not remaining:
                overlap.append(profile.app)
                continue
            # a sibling carrying everything this app still specifies is a subset of it
            covered = [s for s in siblings if all(s.elements.get(k) == v for k, v in remaining.items())]
            if not covered:
                disparate.append(profile.app)
                continue
            differing = [s for s in covered if s.payload != profile.payload]
            if differing:
                conflict.append(profile)
                contradicted.extend(s for s in differing if s not in contradicted)
            else:
                overlap.append(profile.app)
        if overlap:
            assessment.add(
                Finding(Smell.OVERLAP, path, element, values, tuple(overlap), SMELL_WEIGHTS[Smell.OVERLAP] * len(overlap))
            )
        if conflict:
            assessment.add(
                Finding(
                    Smell.CONFLICT,
                    path,
                    element,
                    values,
                    tuple(p.app for p in conflict + contradicted),
                    SMELL_WEIGHTS[Smell.CONFLICT] * len(conflict),
                    _payload_detail(list(dict.fromkeys(p.payload for p in conflict + contradicted))),
                )
            )
        if disparate and not options.disparate_mode:
            assessment.add(
                Finding(
                    Smell.DISPARATE,
                    path,
                    element,
                    values,
                    tuple(disparate),
                    SMELL_WEIGHTS[Smell.DISPARATE] * len(disparate),
                )
            )

    # siblings that carry the same apps should have been one node; qualifiers
    # only distinguish fitment when their types are respected
    exclude = frozenset(consumed)
    immaterial = element in IMMATERIAL_ELEMENTS or element == "qdb"
    alike: dict[tuple, list[FitmentNode]] = {}
    for child in valued:
        signature = _subtree_signature(child, exclude, options.respect_qdb_type)
        alike.setdefault(signature if immaterial else (child.value, signature), []).append(child)
    for siblings_alike in alike.values():
        if len(siblings_alike) < 2:
            continue
        redundant = sum(len(s.profiles) for s in siblings_alike[1:])
        assessment.add(
            Finding(
                Smell.SPURIOUS_SPLIT,
                path,
                element,
                tuple(s.value for s in siblings_alike),
                tuple(app for s in siblings_alike for app in s.apps),
                SMELL_WEIGHTS[Smell.SPURIOUS_SPLIT] * redundant,
            )
        )


def _score_leaf(node: FitmentNode, path: tuple, assessment: TreeAssessment) -> None:
    if len(node.profiles) < 2:
        return

    payloads = list(dict.fromkeys(p.payload for p in node.profiles))
    if len(payloads) > 1:
        assessment.add(
            Finding(
                Smell.CONFLICT,
                path,
                node.element,
                (node.value,),
                tuple(node.apps),
                SMELL_WEIGHTS[Smell.CONFLICT] * len(node.profiles),
                _payload_detail(payloads),
            )
        )

    full = Counter((p.payload, tuple(sorted(p.elements.items()))) for p in node.profiles)
    seen: set = set()
    duplicates = []
    for profile in node.profiles:
        key = (profile.payload, tuple(sorted(profile.elements.items())))
        if full[key] > 1:
            if key in seen:
                duplicates.append(profile.app)
            seen.add(key)
    if duplicates:
        assessment.add(
            Finding(
                Smell.DUPLICATE,
                path,
                node.element,
                (node.value,),
                tuple(duplicates),
                SMELL_WEIGHTS[Smell.DUPLICATE] * len(duplicates),
                "part " + ", ".join(dict.fromkeys(a.part for a in duplicates)),
            )
        )


def score_tree(root: FitmentNode, options: TreeOptions) -> TreeAssessment:
    """Badness of a tree: zero means no structural problem was detected."""
    assessment = TreeAssessment()
    stack: list[tuple[FitmentNode, tuple]] = [(root, ())]
    while stack:
        node, path = stack.pop()
        if node.is_leaf:
            _score_leaf(node, path, assessment)
            continue
        _score_split(node, path, options, assessment)
        for child in reversed(node.children):
            stack.append((child, path + ((node.split, child.value),)))
    return assessment


# ---------------------------------------------------------------------------
# Permutation search
# ---------------------------------------------------------------------------


def element_prevalence(profiles: Sequence[AppProfile]) -> list[str]:
    """Distinct elements, most widely carried first (ties by name)."""
    counts = Counter(key for p in profiles for key in p.elements)
    return sorted(counts, key=lambda key: (-counts[key], key))


def candidate_orderings(order: Sequence[str], limit: int) -> Iterator[tuple[str, ...]]:
    """
    Every ordering when k! fits under the limit, otherwise a deterministic
    subset of at most `limit` orderings that starts from prevalence order.
    """
    order = tuple(order)
    limit = max(1, limit)
    if math.factorial(len(order)) <= limit:
        yield from itertools.permutations(order)
        return

    def promoted() -> Iterator[tuple[str, ...]]:
        for i in range(len(order)):
            yield (order[i],) + order[:i] + order[i + 1 :]

    def swapped() -> Iterator[tuple[str, ...]]:
        for i in range(len(order) - 1):
            yield order[:i] + (order[i + 1], order[i]) + order[i + 2 :]

    seen: set[tuple[str, ...]] = set()
    for ordering in itertools.chain([order], promoted(), swapped(), itertools.permutations(order)):
        if ordering in seen:
            continue
        seen.add(ordering)
        yield ordering
        if len(seen) >= limit:
            return


@dataclass
class SearchResult:
    best: PermutationRecord
    assessment: TreeAssessment
    tried: int = 0
    capped: bool = False

    @property
    def problem_apps(self) -> list[App]:
        return [app for finding in self.assessment.findings for app in finding.apps]


def search_lowest_badness(
    apps: Sequence[App], options: TreeOptions, reference: ReferenceLookup | None = None
) -> SearchResult:
    """Try element orderings and keep the one whose tree has the lowest badness."""
    profiles = profile_apps(apps, options, reference)
    order = element_prevalence(profiles)
    if not order:
        # already fully specific: nothing to order, nothing to score
        return SearchResult(best=PermutationRecord((), 0), assessment=TreeAssessment())

    best: SearchResult | None = None
    tried = 0
    for ordering in candidate_orderings(order, options.limit):
        tried += 1
        assessment = score_tree(build_fitment_tree(profiles, ordering), options)
        if best is None or assessment.badness < best.best.badness:
            best = SearchResult(best=PermutationRecord(ordering, assessment.badness), assessment=assessment)
            if assessment.badness == 0:
                break

    best.tried = tried
    best.capped = math.factorial(len(order)) > max(1, options.limit)
    return best


# ---------------------------------------------------------------------------
# Problem description
# ---------------------------------------------------------------------------


def _element_label(element: str | None) -> str:
    if element is None:
        return "fitment"
    if element.startswith("vcdb:"):
        return element[5:]
    if element == "qdb":
        return "Qdb qualifier"
    if element.startswith("qdb:"):
        return f"Qdb {element[4:]} qualifier"
    return {"mfrlabel": "MfrLabel", "asset": "Asset"}.get(element, element)


def _value_label(element: str | None, value: tuple | None, reference: ReferenceLookup | None) -> str:
    if value is None:
        return "(none)"
    if element is None:
        return ""
    if element.startswith("vcdb:"):
        name = element[5:]
        return "/".join(reference.name_of(name, v) if reference else str(v) for v in value)
    if element.startswith("qdb"):
        return "/".join(
            qualifier_text(QdbQualifier(qualifier_id=qid, params=params), reference) if reference else str(qid)
            for qid, params in value
        )
    return "/".join(str(v) for v in value)


def describe_finding(finding: Finding, reference: ReferenceLookup | None = None) -> str:
    label = _element_label(finding.element)
    values = ", ".join(_value_label(finding.element, v, reference) for v in finding.values)
    where = " > ".join(f"{_element_label(e)}={_value_label(e, v, reference)}" for e, v in finding.path)
    prefix = f"[{where}] " if where else ""

    if finding.smell == Smell.OVERLAP:
        text = f"apps without {label} overlap {label} {values}"
    elif finding.smell == Smell.DISPARATE:
        text = f"disparate qualifiers: {label} {values} beside apps qualified by other attributes"
    elif finding.smell == Smell.SPURIOUS_SPLIT:
        split_values = " / ".join(_value_label(finding.element, v, reference) for v in finding.values)
        text = f"spurious {label} split ({split_values}) separates identical applications"
    elif finding.smell == Smell.CONFLICT:
        text = f"conflicting {finding.detail} for the same fitment"
    else:
        text = f"duplicate applications ({finding.detail})"
    return prefix + text


def describe_assessment(assessment: TreeAssessment, reference: ReferenceLookup | None = None) -> str:
    return "; ".join(describe_finding(f, reference) for f in assessment.findings)


def describe_problem_group(
    apps: Sequence[App], permutation: Sequence[str], options: TreeOptions, reference: ReferenceLookup | None = None
) -> str:
    """Rebuild the tree from a stored ordering and explain what is wrong with it."""
    profiles = profile_apps(apps, options, reference)
    assessment = score_tree(build_fitment_tree(profiles, permutation), options)
    return describe_assessment(assessment, reference)


# ---------------------------------------------------------------------------
# Chunk analysis
# ---------------------------------------------------------------------------


def analyze_fitment_chunk(chunk: AnalysisChunk, reference: ReferenceLookup, options: TreeOptions) -> AnalysisChunk:
    """Search one fitment group and record its best ordering and any problem apps."""
    result = search_lowest_badness(chunk.apps, options, reference)
    chunk.lowest_badness_permutation = list(result.best.elements)
    chunk.lowest_badness = result.best.badness
    if result.capped:
        logger.debug(f"Fitment group {chunk.id}: search capped after {result.tried} orderings")
    if result.best.badness == 0:
        return chunk

    flagged = {id(app) for app in result.problem_apps}
    chunk.problem_apps = [app for app in chunk.apps if id(app) in flagged]
    description = describe_assessment(result.assessment, reference)
    for app in chunk.problem_apps:
        chunk.record(
            Diagnostic(
                category=DiagnosticCategory.FITMENT_LOGIC,
                error_type=description,
                reference=str(chunk.id),
                **app_context(app, reference),
            )
        )
    return chunk


def find_fitment_logic_problems(
    chunk_group: ChunkGroup, reference: ReferenceLookup, settings: Settings
) -> ChunkGroup:
    """Analyze every chunk of a chunk group sequentially."""
    options = TreeOptions.from_settings(settings)
    for chunk in chunk_group.chunks:
        try:
            analyze_fitment_chunk(chunk, reference, options)
        except Exception as e:
            # the group can't be vouched for; report every app in it
            logger.warning(f"Fitment analysis of group {chunk.id} failed: {e}")
            chunk.problem_apps = list(chunk.apps)
            chunk.diagnostics.pop(DiagnosticCategory.FITMENT_LOGIC, None)
            chunk.counts.pop(DiagnosticCategory.FITMENT_LOGIC, None)
            for app in chunk.apps:
                chunk.record(
                    Diagnostic(
                        category=DiagnosticCategory.FITMENT_LOGIC,
                        error_type=f"fitment analysis failure: {e}",
                        reference=str(chunk.id),
                        **safe_app_context(app, reference),
                    )
                )
    return chunk_group
