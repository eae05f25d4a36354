"""
Notarium Backend: Chunking & Continuation Builder Tests
=========================================================

What we test:
    ✅ Image normalization (list, JSON-array string, plain string, garbage)
    ✅ Partition sizes: k images → ceil(max(k, 1) / 3) parts
    ✅ Continuation titles, markers and parent links
    ✅ Counter increments per published part, none for drafts
    ✅ Stored defaults and the author class snapshot
    ✅ Validation happens before any write
    ✅ Oversize part stops the chain, earlier parts stay stored
"""

import json
import math

import pytest

from notarium.config import settings
from notarium.exceptions import NotFoundError, OversizeError, ValidationError
from notarium.models import Note, NoteStatus, Subject, User, Visibility
from notarium.schemas.note import NoteSubmission
from notarium.services.chunking import (
    ChunkingBuilder,
    build_chunks,
    expected_parts,
    normalize_images,
    partition,
    payload_size,
)


def submission(subject_id, **overrides):
    data = {
        "title": "Sistem Pencernaan",
        "description": "Catatan bab 3",
        "extracted_text": "Lambung mencerna protein",
        "tags": ["bab3"],
        "subject_id": subject_id,
    }
    data.update(overrides)
    return NoteSubmission(**data)


class TestNormalizeImages:
    def test_list_wins_over_legacy_field(self):
        assert normalize_images(["a", "b"], '["x"]') == ["a", "b"]

    def test_json_array_string(self):
        assert normalize_images([], '["img1", "img2", "img3"]') == ["img1", "img2", "img3"]

    def test_plain_string_is_single_image(self):
        assert normalize_images([], "data:image/png;base64,AAAA") == ["data:image/png;base64,AAAA"]

    def test_malformed_json_is_kept_as_plain_string(self):
        assert normalize_images([], "[not json") == ["[not json"]

    def test_nothing(self):
        assert normalize_images([], None) == []
        assert normalize_images([], "   ") == []

    def test_empty_entries_dropped(self):
        assert normalize_images(["a", "", "b"]) == ["a", "b"]


class TestPartition:
    def test_zero_images_gives_one_empty_chunk(self):
        assert partition([], 3) == [[]]

    def test_seven_images(self):
        groups = partition([str(i) for i in range(7)], 3)
        assert [len(g) for g in groups] == [3, 3, 1]
        assert groups[2] == ["6"]

    @pytest.mark.parametrize("k", range(0, 11))
    def test_part_count(self, k):
        assert expected_parts(k) == math.ceil(max(k, 1) / 3)
        assert len(partition(list(range(k)), 3)) == expected_parts(k)


class TestBuildChunks:
    def test_first_part_verbatim_continuations_marked(self):
        chunks = build_chunks("Sel", "isi teks", ["1", "2", "3", "4"])
        assert [c.part_number for c in chunks] == [1, 2]
        assert chunks[0].title == "Sel"
        assert chunks[0].extracted_text == "isi teks"
        assert chunks[1].title == "Sel (2)"
        assert chunks[1].extracted_text == settings.continuation_marker + "\n\nisi teks"

    def test_payload_size_counts_utf8_bytes(self):
        size = payload_size("é", "d", "t", ["i"], ["x"])
        expected = json.dumps(
            {
                "title": "é",
                "description": "d",
                "extracted_text": "t",
                "image_path": json.dumps(["i"]),
                "tags": json.dumps(["x"]),
            }
        ).encode("utf-8")
        assert size == len(expected)


class TestChunkingBuilder:
    def setup_method(self):
        self.builder = ChunkingBuilder()

    @pytest.mark.asyncio
    async def test_seven_images_published(self, db_session, world, reload):
        images = [f"img-{i}" for i in range(7)]
        notes = await self.builder.build(
            db_session, world.author.id, submission(world.biology.id, images=images)
        )

        assert len(notes) == 3
        assert [len(n.images) for n in notes] == [3, 3, 1]
        assert [n.part_number for n in notes] == [1, 2, 3]
        assert notes[0].parent_note_id is None
        assert notes[1].parent_note_id == notes[0].id
        assert notes[2].parent_note_id == notes[0].id
        assert [n.title for n in notes] == [
            "Sistem Pencernaan",
            "Sistem Pencernaan (2)",
            "Sistem Pencernaan (3)",
        ]
        assert notes[2].extracted_text.startswith(settings.continuation_marker)
        assert notes[2].extracted_text.endswith("Lambung mencerna protein")
        assert all(n.status is NoteStatus.PUBLISHED for n in notes)

        subject = await reload(Subject, world.biology.id)
        author = await reload(User, world.author.id)
        assert subject.note_count == 3
        assert author.notes_uploaded == 3

    @pytest.mark.asyncio
    async def test_draft_does_not_count(self, db_session, world, reload):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            submission(world.biology.id, images=["a", "b", "c", "d"], status="draft"),
        )

        assert len(notes) == 2
        assert all(n.status is NoteStatus.DRAFT for n in notes)
        assert (await reload(Subject, world.biology.id)).note_count == 0
        assert (await reload(User, world.author.id)).notes_uploaded == 0

    @pytest.mark.asyncio
    async def test_no_images_single_note(self, db_session, world):
        notes = await self.builder.build(db_session, world.author.id, submission(world.biology.id))
        assert len(notes) == 1
        assert notes[0].images == []
        assert notes[0].part_number == 1

    @pytest.mark.asyncio
    async def test_legacy_image_path(self, db_session, world):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            submission(world.biology.id, image_path=json.dumps(["p1", "p2", "p3", "p4"])),
        )
        assert [n.images for n in notes] == [["p1", "p2", "p3"], ["p4"]]

    @pytest.mark.asyncio
    async def test_stored_defaults(self, db_session, world, reload):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            NoteSubmission(title="Judul", subject_id=world.biology.id, visibility=""),
        )
        stored = await reload(Note, notes[0].id)
        assert stored.description == "No description"
        assert stored.content == "No description"
        assert stored.summary == "No description"
        assert stored.visibility is Visibility.EVERYONE
        assert stored.status is NoteStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_content_and_summary_fall_back_to_description(self, db_session, world):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            submission(world.biology.id, content=None, summary="Ringkas"),
        )
        assert notes[0].content == "Catatan bab 3"
        assert notes[0].summary == "Ringkas"

    @pytest.mark.asyncio
    async def test_quick_summary_accepted(self, db_session, world, reload):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            NoteSubmission.model_validate(
                {"title": "Judul", "subject_id": world.biology.id, "quick_summary": "Inti bab"}
            ),
        )
        assert (await reload(Note, notes[0].id)).summary == "Inti bab"

    @pytest.mark.asyncio
    async def test_parts_do_not_share_tag_lists(self, db_session, world):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            submission(world.biology.id, images=["a", "b", "c", "d"]),
        )
        assert notes[0].tags == notes[1].tags == ["bab3"]
        assert notes[0].tags is not notes[1].tags

    @pytest.mark.asyncio
    async def test_author_class_snapshot(self, db_session, world, reload):
        notes = await self.builder.build(
            db_session, world.author.id, submission(world.biology.id, visibility="class")
        )
        author = await db_session.get(User, world.author.id)
        author.class_name = "11.1"
        await db_session.commit()

        stored = await reload(Note, notes[0].id)
        assert stored.author_class == "10.1"
        assert stored.visibility is Visibility.CLASS

    @pytest.mark.asyncio
    async def test_draft_keeps_schedule(self, db_session, world):
        notes = await self.builder.build(
            db_session,
            world.author.id,
            submission(
                world.biology.id,
                status="draft",
                scheduled_publish_at="2026-02-01T08:00:00+00:00",
            ),
        )
        assert notes[0].scheduled_publish_at is not None


class TestChunkingValidation:
    def setup_method(self):
        self.builder = ChunkingBuilder()

    @pytest.mark.asyncio
    async def test_unknown_author(self, db_session, world, count_rows):
        with pytest.raises(NotFoundError):
            await self.builder.build(db_session, 9999, submission(world.biology.id))
        assert await count_rows("notes") == 0

    @pytest.mark.asyncio
    async def test_missing_subject(self, db_session, world, count_rows):
        with pytest.raises(ValidationError) as exc_info:
            await self.builder.build(db_session, world.author.id, submission(None))
        assert exc_info.value.field == "subject_id"
        assert await count_rows("notes") == 0

    @pytest.mark.asyncio
    async def test_unknown_subject(self, db_session, world, count_rows):
        with pytest.raises(ValidationError):
            await self.builder.build(db_session, world.author.id, submission(4242))
        assert await count_rows("notes") == 0

    @pytest.mark.asyncio
    async def test_blank_title(self, db_session, world, count_rows):
        with pytest.raises(ValidationError) as exc_info:
            await self.builder.build(
                db_session, world.author.id, submission(world.biology.id, title="   ")
            )
        assert exc_info.value.field == "title"
        assert await count_rows("notes") == 0


class TestOversize:
    def setup_method(self):
        self.builder = ChunkingBuilder()

    @pytest.mark.asyncio
    async def test_second_part_too_large(self, db_session, world, reload, count_rows):
        huge = "x" * (settings.max_chunk_bytes + 10)
        with pytest.raises(OversizeError) as exc_info:
            await self.builder.build(
                db_session,
                world.author.id,
                submission(world.biology.id, images=["a", "b", "c", huge]),
            )

        err = exc_info.value
        assert err.part_number == 2
        assert err.max_size == settings.max_chunk_bytes
        assert err.actual_size > settings.max_chunk_bytes
        assert len(err.created_note_ids) == 1

        # Part 1 stays committed and counted
        assert await count_rows("notes") == 1
        assert await reload(Note, err.created_note_ids[0]) is not None
        assert (await reload(Subject, world.biology.id)).note_count == 1

    @pytest.mark.asyncio
    async def test_first_part_too_large_writes_nothing(self, db_session, world, count_rows):
        huge = "x" * (settings.max_chunk_bytes + 10)
        with pytest.raises(OversizeError) as exc_info:
            await self.builder.build(
                db_session, world.author.id, submission(world.biology.id, images=[huge])
            )
        assert exc_info.value.part_number == 1
        assert exc_info.value.created_note_ids == []
        assert await count_rows("notes") == 0
