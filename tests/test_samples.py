"""Tests for sample document generation."""

import random
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta

import pytest

from brackit_client.samples import MAX_AGE_MS, Severity, generate_sample_document, write_sample_documents


class TestGenerateSampleDocument:
    """Test cases for single documents."""

    @pytest.mark.parametrize("seed", range(20))
    def test_document_shape(self, seed):
        """Documents are well formed and respect the value ranges."""
        now = datetime(2026, 10, 19, 12, 0, 0)
        document = generate_sample_document(random.Random(seed), now=now)

        assert document.startswith("<?xml version='1.0'?>")
        root = ET.fromstring(document.encode("utf-8"))
        assert root.tag == "log"
        assert root.get("severity") in {s.value for s in Severity}

        timestamp = datetime.fromisoformat(root.get("tstamp"))
        assert now - timedelta(milliseconds=MAX_AGE_MS, seconds=1) <= timestamp <= now

        octets = root.findtext("src").split(".")
        assert octets[:2] == ["192", "168"]
        assert all(1 <= int(octet) <= 254 for octet in octets[2:])

        message = root.findtext("msg")
        assert 10 <= len(message) <= 79
        assert re.fullmatch(r"[a-z]+( [a-z]+)*", message)

    def test_seeded_generation_is_reproducible(self):
        now = datetime(2026, 1, 1)
        first = generate_sample_document(random.Random(7), now=now)
        second = generate_sample_document(random.Random(7), now=now)

        assert first == second


class TestWriteSampleDocuments:
    """Test cases for writing document sets."""

    def test_writes_requested_count(self, tmp_path):
        paths = write_sample_documents(tmp_path, count=10, rng=random.Random(1))

        assert len(paths) == 10
        assert len(set(paths)) == 10
        for path in paths:
            assert path.parent == tmp_path
            assert path.name.startswith("sample")
            assert path.suffix == ".xml"
            ET.parse(path)

    def test_custom_prefix(self, tmp_path):
        paths = write_sample_documents(str(tmp_path), count=2, prefix="log")

        assert all(path.name.startswith("log") for path in paths)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            write_sample_documents(tmp_path / "missing")
