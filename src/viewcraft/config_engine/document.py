"""View documents: rendering the desired XML and normalizing for comparison.

Two documents are considered in sync when their normalized text is
identical. Normalization only removes formatting whitespace between
elements and re-indents with two spaces. Element order, attribute order and
comments are kept, so a difference in any of them counts as drift.
"""
import copy
import re
from typing import Any, Union

from lxml import etree

from ..errors import ConfigurationError, MalformedStateError

INDENT = "  "

# Jenkins writes XML 1.1 declarations, which libxml2 does not support
_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")

VIEW_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<hudson.model.ListView>
  <name/>
  <filterExecutors>false</filterExecutors>
  <filterQueue>false</filterQueue>
  <properties class="hudson.model.View$PropertyList"/>
  <jobNames>
    <comparator class="hudson.util.CaseInsensitiveComparator"/>
  </jobNames>
  <jobFilters/>
  <columns>
    <hudson.views.StatusColumn/>
    <hudson.views.WeatherColumn/>
    <hudson.views.JobColumn/>
    <hudson.views.LastSuccessColumn/>
    <hudson.views.LastFailureColumn/>
    <hudson.views.LastDurationColumn/>
    <hudson.views.BuildButtonColumn/>
  </columns>
</hudson.model.ListView>
"""


def _parser() -> etree.XMLParser:
    # Documents come from a remote server: no entity expansion, no fetching.
    return etree.XMLParser(
        remove_blank_text=True,
        resolve_entities=False,
        no_network=True,
    )


def parse_document(text: Union[str, bytes]) -> Any:
    """Parse XML text into a root element.

    Raises:
        MalformedStateError: If the text is not well-formed XML
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    text = _XML_DECLARATION.sub("", text, count=1)
    try:
        return etree.fromstring(text.encode("utf-8"), _parser())
    except etree.XMLSyntaxError as e:
        raise MalformedStateError(f"Response is not a valid view document: {e}") from e


def render_view_xml(name: str) -> bytes:
    """Render the desired list view document for ``name``.

    The name is written as element text, so lxml escapes markup characters.

    Raises:
        ConfigurationError: If the name holds characters XML cannot carry
    """
    root = etree.fromstring(VIEW_TEMPLATE.encode("utf-8"), _parser())
    try:
        root.find("name").text = name
    except ValueError as e:
        raise ConfigurationError(f"View name {name!r} cannot be written as XML: {e}") from e
    return etree.tostring(
        root,
        xml_declaration=True,
        encoding="UTF-8",
        pretty_print=True,
    )


def normalize_document(document: Any) -> str:
    """Render a document to its canonical text form.

    Accepts an element or an element tree. The input is not modified.
    """
    if hasattr(document, "getroot"):
        document = document.getroot()
    root = copy.deepcopy(document)

    for el in root.iter():
        # Whitespace between child elements is formatting, leaf text is content
        if len(el) and el.text is not None and not el.text.strip():
            el.text = None
        if el.tail is not None and not el.tail.strip():
            el.tail = None

    etree.indent(root, space=INDENT)
    return etree.tostring(root, encoding="unicode")


def documents_match(current: Any, wanted: Any) -> bool:
    """True when both documents normalize to the same text."""
    return normalize_document(current) == normalize_document(wanted)
