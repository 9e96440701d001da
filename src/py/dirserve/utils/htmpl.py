from typing import Callable, Iterable, Iterator, LiteralString, Union, cast

from mypy_extensions import KwArg, VarArg

# --
# HTMPL builds HTML documents out of `Node` trees, escaping text content
# and attribute values as they are serialized.

HTML_EMPTY: list[LiteralString] = (
	"area base br col embed hr img input link meta param source track wbr".split()
)
HTML_ESCAPED = str.maketrans(
	{"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#x27;"}
)
HTML_QUOTED = str.maketrans({"&": "&amp;", '"': "&quot;"})


def escape(text: str) -> str:
	return text.translate(HTML_ESCAPED)


def quoted(text: str | None) -> str:
	return text.translate(HTML_QUOTED) if text else ""


TNodeContent = Union["Node", str, bool, float, int]
TAttributeContent = str | bool | float | int | None


class Node:
	__slots__ = ["name", "attributes", "children"]

	def __init__(
		self,
		name: str,
		children: Iterable[TNodeContent] | None = None,
		attributes: dict[str, TAttributeContent] | None = None,
	):
		self.name = name
		self.attributes: dict[str, TAttributeContent] = attributes or {}
		self.children: list[TNodeContent] = [_ for _ in children] if children else []

	def iterHTML(self) -> Iterator[str]:
		if self.name == "#text":
			yield escape(str(self.attributes.get("#value") or ""))
		else:
			yield f"<{self.name}"
			for k, v in self.attributes.items():
				yield f' {k}="{quoted(str(v))}"' if v is not None else f" {k}"
			if not self.children:
				yield ">" if self.name in HTML_EMPTY else f"></{self.name}>"
			else:
				yield ">"
				for _ in self.children:
					if isinstance(_, Node):
						yield from _.iterHTML()
					elif _ is None:
						pass
					else:
						yield escape(str(_))
				yield f"</{self.name}>"

	def __str__(self) -> str:
		return "".join(self.iterHTML())


def text(value: str) -> Node:
	return Node("#text", attributes={"#value": value})


NodeFactory = Callable[
	[
		VarArg(TNodeContent | list[TNodeContent] | tuple[TNodeContent, ...]),
		KwArg(TAttributeContent),
	],
	Node,
]


def nodeFactory(name: str) -> NodeFactory:
	def f(*children: TNodeContent, **attributes: TAttributeContent) -> Node:
		content: list[TNodeContent] = []
		for _ in children:
			if isinstance(_, (list, tuple)):
				content += list(_)
			else:
				content.append(_)
		attrs: dict[str, TAttributeContent] = {}
		for k, v in attributes.items():
			# `_` stands for `class`, which is a reserved word
			attrs["class" if k == "_" else k] = v
		return Node(
			name,
			children=[text(_) if isinstance(_, str) else _ for _ in content],
			attributes=attrs,
		)

	f.__name__ = name
	return cast(NodeFactory, f)


HTML_TAGS: list[LiteralString] = (
	"""\
a base body caption code col colgroup div footer h1 h2 head header hr html li
link main meta nav p pre section small span style table tbody td tfoot th thead
title tr ul\
""".split()
)


class Markup:
	__slots__ = ["_factories"]

	def __init__(self, factories: dict[str, NodeFactory]):
		self._factories: dict[str, NodeFactory] = factories

	def __getattr__(self, name: str) -> NodeFactory:
		factories = self._factories
		if name not in factories:
			raise AttributeError(
				f"No tag {name}, pick one of {','.join(factories.keys())}"
			)
		return factories[name]


H: Markup = Markup({_: nodeFactory(_) for _ in HTML_TAGS})


def html(*nodes: Node, doctype: str | None = None) -> Iterator[str]:
	if doctype:
		yield f"<!DOCTYPE {doctype}>\n"
	for _ in nodes:
		yield from _.iterHTML()


# EOF
