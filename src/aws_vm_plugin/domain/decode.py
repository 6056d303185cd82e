"""Typed decoding of EC2 Query API XML responses.

EC2 answers with namespaced XML documents; namespaces are dropped after
parsing so fields are looked up by their local tag name. A lookup yields
either the text or the ``MISSING`` marker and callers pick the default.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final

from lxml import etree

from aws_vm_plugin.domain.models import TAG_AUDIT, Artifact, User, VolumeSnapshot
from aws_vm_plugin.utils.time import EPOCH, parse_aws_datetime

logger = logging.getLogger(__name__)

_TRUE_FLAGS = frozenset({"true", "yes", "on", "y", "t"})


class XmlDecodeError(ValueError):
    """Raised when a response body is not well-formed XML."""


class _Missing:
    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()

TagText = str | _Missing


def _parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def parse(document: str | bytes) -> etree._Element:
    """Parse ``document`` and strip every namespace from its tags."""
    data = document.encode("utf-8") if isinstance(document, str) else document
    try:
        root = etree.fromstring(data, parser=_parser())
    except etree.XMLSyntaxError as exc:
        raise XmlDecodeError(f"Malformed XML response: {exc}") from exc
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = etree.QName(element).localname
    etree.cleanup_namespaces(root)
    return root


def tag_text(element: etree._Element, name: str) -> TagText:
    """Text of the first descendant named ``name``, or ``MISSING``."""
    for found in element.iterdescendants(name):
        return "".join(found.itertext())
    return MISSING


def tag_text_or(element: etree._Element, name: str, default: str | None = None) -> str | None:
    text = tag_text(element, name)
    return default if text is MISSING else text  # type: ignore[return-value]


def first_child(element: etree._Element, name: str) -> etree._Element | None:
    for found in element.iterdescendants(name):
        return found
    return None


def resource_tag(element: etree._Element, key: str) -> str | None:
    """Value of the ``tagSet`` entry whose key matches ``key`` (case-insensitive)."""
    tag_set = first_child(element, "tagSet")
    if tag_set is None:
        return None
    for item in tag_set.iterchildren("item"):
        item_key = tag_text_or(item, "key", "")
        if item_key.lower() == key.lower():
            return tag_text_or(item, "value")
    return None


def decode_return_flag(document: str | None) -> bool:
    """Provider acknowledgement: the boolean ``return`` field, absent means false."""
    if document is None:
        return False
    try:
        root = parse(document)
    except XmlDecodeError:
        logger.warning("Unreadable acknowledgement response, considered as failed")
        return False
    text = tag_text(root, "return")
    if text is MISSING:
        return False
    return text.strip().lower() in _TRUE_FLAGS  # type: ignore[union-attr]


def decode_image_id(document: str) -> str | None:
    """Identifier of the image returned by ``CreateImage``."""
    try:
        root = parse(document)
    except XmlDecodeError:
        logger.warning("Unreadable CreateImage response")
        return None
    image_id = tag_text(root, "imageId")
    if image_id is MISSING or not image_id.strip():  # type: ignore[union-attr]
        return None
    return image_id.strip()  # type: ignore[union-attr]


def decode_volume(element: etree._Element) -> VolumeSnapshot:
    """Block device mapping entry; ``id`` stays ``None`` for non-EBS devices."""
    volume = VolumeSnapshot(id=None, name=tag_text_or(element, "deviceName"))
    ebs = first_child(element, "ebs")
    if ebs is not None:
        volume.id = tag_text_or(ebs, "snapshotId")
        size = tag_text_or(ebs, "volumeSize", "0")
        try:
            volume.size = int(size)
        except ValueError:
            logger.info("Invalid size %r for volume snapshot %s", size, volume.id)
    return volume


def decode_artifact(
    element: etree._Element,
    resolve_user: Callable[[str], User],
) -> Artifact:
    description = tag_text_or(element, "description")
    artifact = Artifact(
        id=tag_text_or(element, "imageId"),
        name=tag_text_or(element, "name"),
        description=(description or "").strip() or None,
        status_text=tag_text_or(element, "imageState"),
    )
    artifact.available = artifact.status_text == "available"
    artifact.pending = artifact.status_text == "pending"

    author = resource_tag(element, TAG_AUDIT)
    artifact.author = resolve_user(author) if author is not None else None

    mapping = first_child(element, "blockDeviceMapping")
    if mapping is not None:
        volumes = (decode_volume(item) for item in mapping.iterchildren("item"))
        artifact.volumes = [volume for volume in volumes if volume.id is not None]

    created = tag_text(element, "creationDate")
    try:
        if created is MISSING:
            raise ValueError("missing creationDate")
        artifact.date = parse_aws_datetime(created)  # type: ignore[arg-type]
    except ValueError as exc:
        artifact.date = EPOCH
        logger.info("Details of AMI %s cannot be fully parsed: %s", artifact.id, exc)
    return artifact


def decode_artifacts(
    document: str | None,
    resolve_user: Callable[[str], User],
) -> list[Artifact]:
    """Decode a ``DescribeImagesResponse``; an empty body is an empty list."""
    if not document:
        return []
    root = parse(document)
    return [
        decode_artifact(item, resolve_user)
        for item in root.xpath("/DescribeImagesResponse/imagesSet/item")
    ]
