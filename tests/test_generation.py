"""Tests for index generations and the generation holder."""

import threading
import time

import pytest

from codesift.errors import NotIndexed
from codesift.generation import GenerationHolder, IndexGeneration, IndexState
from codesift.index_store import LexicalIndexStore
from codesift.models import CodeChunk


def _generation(number: int, names=("add",)) -> IndexGeneration:
    chunks = tuple(
        CodeChunk(
            id=f"a.js:{i + 1}:{name}",
            kind="function",
            name=name,
            source_text=f"function {name}() {{}}",
            file_path="a.js",
            line=i + 1,
            context_window="",
        )
        for i, name in enumerate(names)
    )
    lexical = LexicalIndexStore()
    lexical.rebuild(list(chunks))
    return IndexGeneration(number=number, root="/src", file_count=1, chunks=chunks, lexical=lexical)


class TestIndexGeneration:

    def test_lookup_by_id(self):
        generation = _generation(1, names=("add", "sub"))

        assert generation.chunk("a.js:2:sub").name == "sub"
        assert generation.chunk("missing") is None

    def test_lexical_mode_without_vector_store(self):
        generation = _generation(1)

        assert generation.backend_mode == "lexical"
        assert generation.embedded_count == 0


class TestGenerationHolder:

    def test_starts_empty(self):
        holder = GenerationHolder()

        assert holder.state == IndexState.EMPTY
        assert holder.current is None

    def test_query_before_any_index_fails_fast(self):
        with pytest.raises(NotIndexed):
            GenerationHolder().wait_ready(timeout=None)

    def test_publish_makes_ready(self):
        holder = GenerationHolder()
        number = holder.begin()

        assert holder.state == IndexState.INDEXING

        published, retired = holder.publish(_generation(number))

        assert published
        assert retired == []
        assert holder.state == IndexState.READY
        assert holder.wait_ready().number == number

    def test_stale_build_is_discarded(self):
        holder = GenerationHolder()
        older = holder.begin()
        newer = holder.begin()

        assert holder.is_stale(older)
        assert not holder.is_stale(newer)

        holder.publish(_generation(newer, names=("fresh",)))
        published, retired = holder.publish(_generation(older, names=("stale",)))

        assert not published
        assert [g.number for g in retired] == [older]
        assert holder.current.chunks[0].name == "fresh"

    def test_previous_generation_retired_one_round_later(self):
        holder = GenerationHolder()
        first = _generation(holder.begin())
        holder.publish(first)
        _, retired = holder.publish(_generation(holder.begin()))

        assert retired == []

        _, retired = holder.publish(_generation(holder.begin()))
        assert retired == [first]

    def test_abort_keeps_previous_generation(self):
        holder = GenerationHolder()
        holder.publish(_generation(holder.begin()))
        number = holder.begin()
        holder.abort(number)

        assert holder.state == IndexState.READY
        assert holder.wait_ready().number == 1

    def test_abort_with_nothing_published(self):
        holder = GenerationHolder()
        holder.abort(holder.begin())

        assert holder.state == IndexState.EMPTY
        with pytest.raises(NotIndexed):
            holder.wait_ready()

    def test_wait_blocks_until_build_finishes(self):
        holder = GenerationHolder()
        number = holder.begin()
        seen = []

        def _reader():
            seen.append(holder.wait_ready(timeout=5.0).number)

        reader = threading.Thread(target=_reader)
        reader.start()
        time.sleep(0.1)

        assert seen == []

        holder.publish(_generation(number))
        reader.join(timeout=5.0)

        assert seen == [number]

    def test_wait_never_returns_a_partial_generation(self):
        holder = GenerationHolder()
        holder.publish(_generation(holder.begin(), names=("old",)))
        number = holder.begin()
        seen = []

        reader = threading.Thread(target=lambda: seen.append(holder.wait_ready(timeout=5.0)))
        reader.start()
        time.sleep(0.1)
        holder.publish(_generation(number, names=("new",)))
        reader.join(timeout=5.0)

        assert seen[0].chunks[0].name == "new"

    def test_wait_timeout(self):
        holder = GenerationHolder()
        holder.begin()

        with pytest.raises(NotIndexed, match="in progress"):
            holder.wait_ready(timeout=0.05)
