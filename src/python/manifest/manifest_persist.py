# Copyright 2024, Manifesto Contributors, All rights reserved.

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional

from common import overrides, Constants, Manifest, ManifestEntry, Persist, PersistError


class ManifestPersist(Persist):
    """
    XML representation of a manifest

    Empty values are omitted from the document and read back as None.
    """

    # Elements
    __TAG_ROOT = "Manifest"
    __TAG_ID = "ID"
    __TAG_DESCRIPTION = "Description"
    __TAG_HASH_ALGORITHM = "HashAlgorithm"
    __TAG_TIMESTAMP = "TimestampUtc"
    __TAG_CONTENTS = "Contents"
    __TAG_ENTRY = "Entry"

    # Entry attributes
    __ATTR_HASH = "Hash"
    __ATTR_SIZE = "Size"
    __ATTR_FILE = "File"
    __ATTR_REMOTE = "Remote"

    __XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'

    def __init__(self, manifest: Optional[Manifest] = None):
        self.manifest = manifest if manifest is not None else Manifest()

    @staticmethod
    def parse_timestamp(value: str) -> datetime:
        """
        Parse an ISO-8601 timestamp, reading a missing offset as UTC
        :param value:
        :return: timezone-aware datetime in UTC
        """
        timestamp = datetime.fromisoformat(value.strip())
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    @classmethod
    @overrides(Persist)
    def from_str(cls: "ManifestPersist", content: str) -> "ManifestPersist":
        try:
            root = ET.fromstring(content)
            if root.tag != ManifestPersist.__TAG_ROOT:
                raise PersistError("Unexpected root element <{}>".format(root.tag))

            manifest_id = root.findtext(ManifestPersist.__TAG_ID)
            if not manifest_id:
                raise PersistError("Missing <{}>".format(ManifestPersist.__TAG_ID))
            timestamp = root.findtext(ManifestPersist.__TAG_TIMESTAMP)
            if not timestamp:
                raise PersistError("Missing <{}>".format(ManifestPersist.__TAG_TIMESTAMP))

            entries = []
            contents = root.find(ManifestPersist.__TAG_CONTENTS)
            if contents is not None:
                for element in contents.findall(ManifestPersist.__TAG_ENTRY):
                    entries.append(ManifestPersist.__entry_from_element(element))

            manifest = Manifest(
                id=manifest_id,
                description=root.findtext(ManifestPersist.__TAG_DESCRIPTION),
                hash_algorithm=root.findtext(ManifestPersist.__TAG_HASH_ALGORITHM),
                timestamp_utc=ManifestPersist.parse_timestamp(timestamp),
                contents=entries,
            )
            return ManifestPersist(manifest)
        except (ET.ParseError, ValueError) as e:
            raise PersistError("Error parsing ManifestPersist - {}: {}".format(type(e).__name__, str(e)))

    @overrides(Persist)
    def to_str(self) -> str:
        manifest = self.manifest
        root = ET.Element(ManifestPersist.__TAG_ROOT)
        ET.SubElement(root, ManifestPersist.__TAG_ID).text = manifest.id
        if manifest.description:
            ET.SubElement(root, ManifestPersist.__TAG_DESCRIPTION).text = manifest.description
        if manifest.hash_algorithm:
            ET.SubElement(root, ManifestPersist.__TAG_HASH_ALGORITHM).text = manifest.hash_algorithm
        ET.SubElement(root, ManifestPersist.__TAG_TIMESTAMP).text = manifest.timestamp_utc.isoformat()

        contents = ET.SubElement(root, ManifestPersist.__TAG_CONTENTS)
        for entry in manifest.contents:
            element = ET.SubElement(contents, ManifestPersist.__TAG_ENTRY)
            # Attribute order is kept as inserted
            if entry.hash:
                element.set(ManifestPersist.__ATTR_HASH, entry.hash)
            element.set(ManifestPersist.__ATTR_SIZE, str(entry.size))
            element.set(ManifestPersist.__ATTR_FILE, entry.file)
            if entry.remote:
                element.set(ManifestPersist.__ATTR_REMOTE, entry.remote)

        ET.indent(root, space=Constants.XML_PRETTY_PRINT_INDENT)
        # Parsers normalize a raw "\r" in text to "\n", only a character reference survives.
        # Attribute values are already escaped this way by ElementTree.
        body = ET.tostring(root, encoding="unicode").replace("\r", "&#13;")
        return "{}\n{}\n".format(ManifestPersist.__XML_DECLARATION, body)

    @staticmethod
    def __entry_from_element(element: ET.Element) -> ManifestEntry:
        file_path = element.get(ManifestPersist.__ATTR_FILE)
        if not file_path:
            raise PersistError("<{}> is missing the {} attribute".format(
                ManifestPersist.__TAG_ENTRY, ManifestPersist.__ATTR_FILE)
            )
        return ManifestEntry(
            file=file_path,
            size=int(element.get(ManifestPersist.__ATTR_SIZE, "0")),
            hash=element.get(ManifestPersist.__ATTR_HASH),
            remote=element.get(ManifestPersist.__ATTR_REMOTE),
        )
