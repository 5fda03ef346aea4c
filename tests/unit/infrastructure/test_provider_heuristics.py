"""Tests for hostname-specific extraction heuristics."""

from __future__ import annotations

from streamgate.domain.entities.media import MediaType
from streamgate.infrastructure.providers import select_heuristics
from streamgate.infrastructure.providers.heuristics import (
    DoodstreamHeuristic,
    GenericAssignmentHeuristic,
    PackedPlayerHeuristic,
    StreamtapeHeuristic,
)


class TestStreamtape:
    HTML = (
        '<div id="ideoolink" style="display:none;">'
        "/streamtape.com/get_video?id=abc&expires=123&ip=X&token=old</div>\n"
        "<script>document.getElementById('robotlink').innerHTML = "
        "'//streamtape.com/get_video?id=abc&expires=123&ip=X&token=new';</script>"
    )

    def test_rebuilds_link_with_corrected_token(self) -> None:
        result = StreamtapeHeuristic().extract(self.HTML, "https://streamtape.com/e/abc")
        assert [c.url for c in result] == [
            "https://streamtape.com/get_video?id=abc&expires=123&ip=X&token=new&stream=1"
        ]
        assert result[0].type is MediaType.MP4

    def test_keeps_markup_token_without_script(self) -> None:
        html = "<div>/streamtape.com/get_video?id=abc&expires=123&ip=X&token=old</div>"
        result = StreamtapeHeuristic().extract(html, "https://streamtape.com/e/abc")
        assert result[0].url.endswith("token=old&stream=1")

    def test_no_params(self) -> None:
        assert StreamtapeHeuristic().extract("<html></html>", "https://streamtape.com/e/x") == []

    def test_matches(self) -> None:
        heuristic = StreamtapeHeuristic()
        assert heuristic.matches("streamtape.com", "")
        assert heuristic.matches("mirror.example", "<div id='robotlink'></div>")
        assert not heuristic.matches("example.com", "<html></html>")


class TestPackedPlayer:
    def test_unpacks_jwplayer_config(self, pack) -> None:
        source = (
            'jwplayer("v").setup({sources:[{file:"https://cdn.example.com/hls2/01/master.m3u8?t=1"}],'
            'image:"https://cdn.example.com/poster.jpg"})'
        )
        html = f"<script>{pack(source)}</script>"
        result = PackedPlayerHeuristic().extract(html, "https://filemoon.sx/e/abc")
        assert [c.url for c in result] == ["https://cdn.example.com/hls2/01/master.m3u8?t=1"]
        assert result[0].type is MediaType.HLS

    def test_hls_keys(self) -> None:
        html = (
            'var links={"hls4":"https://cdn.example.com/a/master.m3u8",'
            '"hls2":"https://cdn.example.com/b/master.m3u8"};'
        )
        result = PackedPlayerHeuristic().extract(html, "https://vidhide.com/v/1")
        assert [c.url for c in result] == [
            "https://cdn.example.com/a/master.m3u8",
            "https://cdn.example.com/b/master.m3u8",
        ]

    def test_drops_thumbnail_and_sprite_tracks(self) -> None:
        html = (
            'sources:[{file:"https://cdn.example.com/v.mp4"}],'
            'tracks:[{file:"https://cdn.example.com/sprite/thumbs.mp4"}]'
        )
        result = PackedPlayerHeuristic().extract(html, "https://streamwish.to/e/1")
        assert [c.url for c in result] == ["https://cdn.example.com/v.mp4"]

    def test_matches_by_host_or_content(self) -> None:
        heuristic = PackedPlayerHeuristic()
        assert heuristic.matches("filemoon.sx", "")
        assert heuristic.matches("www.streamwish.to", "")
        assert heuristic.matches("unknown.example", "eval(function(p,a,c,k,e,d){}")
        assert not heuristic.matches("unknown.example", "<html></html>")


class TestDoodstream:
    def test_literals_only(self) -> None:
        html = (
            "$.get('/pass_md5/abc/def', function(data) {});"
            "var fallback = 'https://cdn.dood.example/video.mp4?token=1';"
        )
        result = DoodstreamHeuristic().extract(html, "https://dood.to/e/abc")
        assert [c.url for c in result] == ["https://cdn.dood.example/video.mp4?token=1"]

    def test_matches(self) -> None:
        assert DoodstreamHeuristic().matches("dood.to", "")
        assert DoodstreamHeuristic().matches("doodstream.com", "")
        assert not DoodstreamHeuristic().matches("example.com", ".mp4")


def test_generic_assignment_resolves_relative_paths() -> None:
    html = 'var src = "/media/file.mp4";'
    result = GenericAssignmentHeuristic().extract(html, "https://example.com/embed/1")
    assert [c.url for c in result] == ["https://example.com/media/file.mp4"]


class TestSelectHeuristics:
    def test_host_specific(self) -> None:
        names = [h.name for h in select_heuristics("filemoon.sx", "<html></html>")]
        assert names == ["packed_player"]

    def test_content_markers_in_registration_order(self) -> None:
        names = [
            h.name
            for h in select_heuristics("example.com", "<a id='robotlink'></a> video.mp4")
        ]
        assert names == ["streamtape", "generic_assignment"]

    def test_nothing_applies(self) -> None:
        assert select_heuristics("example.com", "<html></html>") == []
