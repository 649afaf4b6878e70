"""
Course content tree: modules → categories → materials.

Why:
    A course's content is edited one node at a time from nested forms. Storing
    it as nested lists forces every edit to rebuild the whole chain of parents.
    Here the tree is kept arena-style: one map of nodes keyed by id plus a map
    of ordered child ids per parent. An edit replaces one node entry and at most
    one child list; every other node object is shared with the previous tree.

Behavior:
    - Trees are immutable values. Mutators return a `TreeEdit` describing the
      new tree and whether the edit applied; the input is never modified.
    - Unknown parent/node ids make a mutator a no-op (`applied=False`).
    - New children are appended after their existing siblings.
    - Nodes never move between parents; only create, edit in place, delete.

Persistence:
    `from_content`/`to_content` convert to the nested JSON stored in the
    course's `content` column. Reading also accepts the camelCase keys written
    by the earlier local-storage revisions.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import NAMESPACE_URL, uuid4, uuid5

from teaching.scope import Scope, UNRESTRICTED, normalize_classrooms, normalize_years, scope_from_record

MODULE = "module"
CATEGORY = "category"
MATERIAL = "material"

MATERIAL_KINDS = ("file", "link")
_ROOT = "__root__"
_MAX_TITLE = 200
_STORED_ID_NAMESPACE = uuid5(NAMESPACE_URL, "portal:course-content")


@dataclass(frozen=True)
class ModuleNode:
    id: str
    title: str
    illustration_url: str = ""
    scope: Scope = UNRESTRICTED


@dataclass(frozen=True)
class CategoryNode:
    id: str
    title: str
    illustration_url: str = ""
    scope: Scope = UNRESTRICTED


@dataclass(frozen=True)
class MaterialNode:
    id: str
    title: str
    kind: str
    content: str
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    scope: Scope = UNRESTRICTED


Node = Union[ModuleNode, CategoryNode, MaterialNode]

_KIND_BY_TYPE = {ModuleNode: MODULE, CategoryNode: CATEGORY, MaterialNode: MATERIAL}
_EDITABLE = {
    MODULE: {"title", "illustration_url", "classrooms", "years"},
    CATEGORY: {"title", "illustration_url", "classrooms", "years"},
    MATERIAL: {"title", "kind", "content", "file_name", "file_type", "classrooms", "years"},
}


def clean_title(value: Any) -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not title or len(title) > _MAX_TITLE:
        raise ValueError("invalid_title")
    return title


def _clean_optional(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _check_material(node: MaterialNode) -> MaterialNode:
    if node.kind not in MATERIAL_KINDS:
        raise ValueError("invalid_kind")
    if not isinstance(node.content, str) or not node.content.strip():
        raise ValueError("invalid_content")
    if node.kind == "link":
        return replace(node, content=node.content.strip())
    return node


@dataclass(frozen=True)
class TreeEdit:
    tree: "ContentTree"
    applied: bool
    node_id: Optional[str] = None


@dataclass(frozen=True)
class ContentTree:
    nodes: Mapping[str, Node] = field(default_factory=dict)
    children: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: {_ROOT: ()})
    parents: Mapping[str, str] = field(default_factory=dict)

    # --- Reading ------------------------------------------------------------------

    def module_ids(self) -> Tuple[str, ...]:
        return tuple(self.children.get(_ROOT, ()))

    def category_ids(self, module_id: str) -> Tuple[str, ...]:
        if self.kind_of(module_id) != MODULE:
            return ()
        return tuple(self.children.get(module_id, ()))

    def material_ids(self, category_id: str) -> Tuple[str, ...]:
        if self.kind_of(category_id) != CATEGORY:
            return ()
        return tuple(self.children.get(category_id, ()))

    def node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def kind_of(self, node_id: str) -> Optional[str]:
        node = self.nodes.get(node_id)
        return _KIND_BY_TYPE[type(node)] if node is not None else None

    def parent_of(self, node_id: str) -> Optional[str]:
        parent = self.parents.get(node_id)
        return None if parent == _ROOT else parent

    def modules(self) -> List[ModuleNode]:
        return [self.nodes[mid] for mid in self.module_ids()]  # type: ignore[misc]

    def categories(self, module_id: str) -> List[CategoryNode]:
        return [self.nodes[cid] for cid in self.category_ids(module_id)]  # type: ignore[misc]

    def materials(self, category_id: str) -> List[MaterialNode]:
        return [self.nodes[mid] for mid in self.material_ids(category_id)]  # type: ignore[misc]

    def node_count(self) -> Dict[str, int]:
        counts = {MODULE: 0, CATEGORY: 0, MATERIAL: 0}
        for node in self.nodes.values():
            counts[_KIND_BY_TYPE[type(node)]] += 1
        return counts

    def _descendants(self, node_id: str) -> List[str]:
        out: List[str] = []
        stack = list(self.children.get(node_id, ()))
        while stack:
            current = stack.pop()
            out.append(current)
            stack.extend(self.children.get(current, ()))
        return out

    # --- Mutators -----------------------------------------------------------------

    def _with_child(self, parent_key: str, node: Node) -> TreeEdit:
        nodes = dict(self.nodes)
        children = dict(self.children)
        parents = dict(self.parents)
        nodes[node.id] = node
        children[parent_key] = tuple(children.get(parent_key, ())) + (node.id,)
        if not isinstance(node, MaterialNode):
            children[node.id] = ()
        parents[node.id] = parent_key
        return TreeEdit(ContentTree(nodes, children, parents), True, node.id)

    def add_module(
        self,
        *,
        title: str,
        illustration_url: str = "",
        classrooms: Optional[Iterable[Any]] = None,
        years: Optional[Iterable[Any]] = None,
    ) -> TreeEdit:
        node = ModuleNode(
            id=str(uuid4()),
            title=clean_title(title),
            illustration_url=(illustration_url or "").strip(),
            scope=Scope(normalize_classrooms(classrooms), normalize_years(years)),
        )
        return self._with_child(_ROOT, node)

    def add_category(
        self,
        module_id: str,
        *,
        title: str,
        illustration_url: str = "",
        classrooms: Optional[Iterable[Any]] = None,
        years: Optional[Iterable[Any]] = None,
    ) -> TreeEdit:
        node = CategoryNode(
            id=str(uuid4()),
            title=clean_title(title),
            illustration_url=(illustration_url or "").strip(),
            scope=Scope(normalize_classrooms(classrooms), normalize_years(years)),
        )
        if self.kind_of(module_id) != MODULE:
            return TreeEdit(self, False)
        return self._with_child(module_id, node)

    def add_material(
        self,
        category_id: str,
        *,
        title: str,
        kind: str,
        content: str,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        classrooms: Optional[Iterable[Any]] = None,
        years: Optional[Iterable[Any]] = None,
    ) -> TreeEdit:
        node = _check_material(
            MaterialNode(
                id=str(uuid4()),
                title=clean_title(title),
                kind=kind,
                content=content,
                file_name=_clean_optional(file_name) if kind == "file" else None,
                file_type=_clean_optional(file_type) if kind == "file" else None,
                scope=Scope(normalize_classrooms(classrooms), normalize_years(years)),
            )
        )
        if self.kind_of(category_id) != CATEGORY:
            return TreeEdit(self, False)
        return self._with_child(category_id, node)

    def update_node(self, node_id: str, changes: Mapping[str, Any]) -> TreeEdit:
        """Replace the fields named in `changes` on one node; id and children stay untouched.

        Raises ValueError("invalid_field") for fields the node kind does not
        have and the usual validation errors for bad values.
        """
        kind = self.kind_of(node_id)
        allowed = _EDITABLE[kind] if kind else set().union(*_EDITABLE.values())
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError("invalid_field")
        if kind is None:
            return TreeEdit(self, False)
        changes = dict(changes)
        node = self.nodes[node_id]
        fields: Dict[str, Any] = {}
        scope = node.scope
        if "classrooms" in changes:
            scope = replace(scope, classrooms=normalize_classrooms(changes.pop("classrooms")))
        if "years" in changes:
            scope = replace(scope, years=normalize_years(changes.pop("years")))
        fields["scope"] = scope
        if "title" in changes:
            fields["title"] = clean_title(changes.pop("title"))
        if "illustration_url" in changes:
            fields["illustration_url"] = (changes.pop("illustration_url") or "").strip()
        for key in ("file_name", "file_type"):
            if key in changes:
                fields[key] = _clean_optional(changes.pop(key))
        fields.update(changes)
        updated = replace(node, **fields)
        if isinstance(updated, MaterialNode):
            if updated.kind == "link":
                updated = replace(updated, file_name=None, file_type=None)
            updated = _check_material(updated)
        nodes = dict(self.nodes)
        nodes[node_id] = updated
        return TreeEdit(ContentTree(nodes, self.children, self.parents), True, node_id)

    def update_module(self, module_id: str, changes: Mapping[str, Any]) -> TreeEdit:
        if self.kind_of(module_id) != MODULE:
            return TreeEdit(self, False)
        return self.update_node(module_id, changes)

    def update_category(self, category_id: str, changes: Mapping[str, Any]) -> TreeEdit:
        if self.kind_of(category_id) != CATEGORY:
            return TreeEdit(self, False)
        return self.update_node(category_id, changes)

    def update_material(self, material_id: str, changes: Mapping[str, Any]) -> TreeEdit:
        if self.kind_of(material_id) != MATERIAL:
            return TreeEdit(self, False)
        return self.update_node(material_id, changes)

    def remove_node(self, node_id: str) -> TreeEdit:
        """Remove a node together with its whole subtree."""
        if node_id not in self.nodes:
            return TreeEdit(self, False)
        doomed = [node_id] + self._descendants(node_id)
        nodes = dict(self.nodes)
        children = dict(self.children)
        parents = dict(self.parents)
        parent_key = parents[node_id]
        children[parent_key] = tuple(cid for cid in children.get(parent_key, ()) if cid != node_id)
        for nid in doomed:
            nodes.pop(nid, None)
            children.pop(nid, None)
            parents.pop(nid, None)
        return TreeEdit(ContentTree(nodes, children, parents), True, node_id)

    def remove_module(self, module_id: str) -> TreeEdit:
        if self.kind_of(module_id) != MODULE:
            return TreeEdit(self, False)
        return self.remove_node(module_id)

    def remove_category(self, category_id: str) -> TreeEdit:
        if self.kind_of(category_id) != CATEGORY:
            return TreeEdit(self, False)
        return self.remove_node(category_id)

    def remove_material(self, material_id: str) -> TreeEdit:
        if self.kind_of(material_id) != MATERIAL:
            return TreeEdit(self, False)
        return self.remove_node(material_id)

    def prune(self, keep: Callable[[Node], bool]) -> "ContentTree":
        """Return a tree without the nodes failing `keep` (and their subtrees)."""
        nodes: Dict[str, Node] = {}
        children: Dict[str, Tuple[str, ...]] = {}
        parents: Dict[str, str] = {}

        def walk(parent_key: str) -> None:
            kept: List[str] = []
            for cid in self.children.get(parent_key, ()):
                node = self.nodes[cid]
                if not keep(node):
                    continue
                kept.append(cid)
                nodes[cid] = node
                parents[cid] = parent_key
                if not isinstance(node, MaterialNode):
                    walk(cid)
            children[parent_key] = tuple(kept)

        walk(_ROOT)
        return ContentTree(nodes, children, parents)

    # --- Serialization ------------------------------------------------------------

    @classmethod
    def from_content(cls, content: Optional[Iterable[Mapping[str, Any]]]) -> "ContentTree":
        """Build a tree from nested JSON (snake_case or legacy camelCase keys)."""
        nodes: Dict[str, Node] = {}
        children: Dict[str, Tuple[str, ...]] = {_ROOT: ()}
        parents: Dict[str, str] = {}

        def stored_id(raw: Any, parent_key: str, position: int) -> str:
            # Missing or duplicate ids are derived from the node's place so
            # repeated reads of the same content agree on them.
            nid = str(raw or "").strip()
            if nid and nid not in nodes:
                return nid
            nid = str(uuid5(_STORED_ID_NAMESPACE, f"{parent_key}/{position}"))
            while nid in nodes:
                nid = str(uuid5(_STORED_ID_NAMESPACE, nid))
            return nid

        def attach(parent_key: str, node: Node) -> None:
            nodes[node.id] = node
            parents[node.id] = parent_key
            children[parent_key] = children.get(parent_key, ()) + (node.id,)
            if not isinstance(node, MaterialNode):
                children.setdefault(node.id, ())

        try:
            for m_pos, m in enumerate(content or ()):
                module = ModuleNode(
                    id=stored_id(m.get("id"), _ROOT, m_pos),
                    title=str(m.get("title") or ""),
                    illustration_url=str(m.get("illustration_url") or m.get("illustrationUrl") or ""),
                    scope=scope_from_record(m),
                )
                attach(_ROOT, module)
                for c_pos, c in enumerate(m.get("categories") or ()):
                    category = CategoryNode(
                        id=stored_id(c.get("id"), module.id, c_pos),
                        title=str(c.get("title") or ""),
                        illustration_url=str(c.get("illustration_url") or c.get("illustrationUrl") or ""),
                        scope=scope_from_record(c),
                    )
                    attach(module.id, category)
                    for mat_pos, mat in enumerate(c.get("materials") or ()):
                        material = MaterialNode(
                            id=stored_id(mat.get("id"), category.id, mat_pos),
                            title=str(mat.get("title") or ""),
                            kind=str(mat.get("kind") or mat.get("type") or "file"),
                            content=str(mat.get("content") or ""),
                            file_name=mat.get("file_name") or mat.get("fileName"),
                            file_type=mat.get("file_type") or mat.get("fileType"),
                            scope=scope_from_record(mat),
                        )
                        attach(category.id, material)
        except (AttributeError, TypeError, ValueError) as exc:
            raise ValueError("invalid_content") from exc
        return cls(nodes, children, parents)

    def to_content(self) -> List[Dict[str, Any]]:
        """Nested JSON in display order, as stored in the `content` column."""
        out: List[Dict[str, Any]] = []
        for module in self.modules():
            categories = []
            for category in self.categories(module.id):
                materials = [
                    {
                        "id": mat.id,
                        "title": mat.title,
                        "kind": mat.kind,
                        "content": mat.content,
                        "file_name": mat.file_name,
                        "file_type": mat.file_type,
                        "classrooms": list(mat.scope.classrooms),
                        "years": list(mat.scope.years),
                    }
                    for mat in self.materials(category.id)
                ]
                categories.append(
                    {
                        "id": category.id,
                        "title": category.title,
                        "illustration_url": category.illustration_url,
                        "classrooms": list(category.scope.classrooms),
                        "years": list(category.scope.years),
                        "materials": materials,
                    }
                )
            out.append(
                {
                    "id": module.id,
                    "title": module.title,
                    "illustration_url": module.illustration_url,
                    "classrooms": list(module.scope.classrooms),
                    "years": list(module.scope.years),
                    "categories": categories,
                }
            )
        return out


EMPTY_TREE = ContentTree()

__all__ = [
    "MODULE",
    "CATEGORY",
    "MATERIAL",
    "MATERIAL_KINDS",
    "ModuleNode",
    "CategoryNode",
    "MaterialNode",
    "ContentTree",
    "TreeEdit",
    "EMPTY_TREE",
]
