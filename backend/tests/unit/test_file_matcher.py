"""
Unit tests for the File Matcher

Tests for select_file() from backend/tamilarr/services/file_matcher.py
covering:
- Episode matching (PTT parse and SxxEyy regex fallback)
- Largest video for movies
- Largest-video fallback when no file carries the episode
- Alignment of links with selected files
"""

from unittest.mock import patch

from tamilarr.services.file_matcher import (
    select_file,
    episode_from_filename,
    is_video,
    FileMatch,
)


SEASON_FILES = [
    {'id': 1, 'path': '/Show.S01/Show.S01E01.1080p.WEB-DL.mkv', 'bytes': 1_000, 'selected': 1},
    {'id': 2, 'path': '/Show.S01/Show.S01E02.1080p.WEB-DL.mkv', 'bytes': 2_000, 'selected': 1},
    {'id': 3, 'path': '/Show.S01/Show.S01E03.1080p.WEB-DL.mkv', 'bytes': 1_500, 'selected': 1},
]
SEASON_LINKS = ['https://rd/l1', 'https://rd/l2', 'https://rd/l3']


class TestEpisodeFromFilename:
    """Test episode derivation from file names."""

    def test_standard_episode_tag(self):
        assert episode_from_filename('/Show.S01/Show.S01E07.720p.mkv') == 7

    def test_movie_has_no_episode(self):
        assert episode_from_filename('/Movie.2023.1080p.WEB-DL.mkv') is None

    def test_regex_fallback_when_parser_finds_nothing(self):
        """The SxxEyy regex is used when the parser reports no episode."""
        with patch('tamilarr.services.file_matcher.PTT.parse_title', return_value={}):
            assert episode_from_filename('/Show S01 EP12 Tamil.mkv') == 12
            assert episode_from_filename('/Show S02E3.mkv') == 3

    def test_episode_from_folder_name(self):
        assert episode_from_filename('/Show.S01E03/video.mkv') == 3

    def test_file_name_wins_over_folder(self):
        assert episode_from_filename('/Show.S01E03/Show.S01E04.mkv') == 4

    def test_empty_path(self):
        assert episode_from_filename('') is None
        assert episode_from_filename(None) is None


class TestIsVideo:

    def test_video_extensions(self):
        for name in ('a.mkv', 'a.MP4', 'a.avi', 'a.mov', 'a.m4v'):
            assert is_video(name)

    def test_non_video(self):
        assert not is_video('a.nfo')
        assert not is_video('a.srt')
        assert not is_video('')


class TestEpisodeSelection:
    """Test picking an episode inside a multi-file release."""

    def test_matches_requested_episode(self):
        match = select_file(SEASON_FILES, SEASON_LINKS, episode=2)

        assert isinstance(match, FileMatch)
        assert match.index == 1
        assert match.link == 'https://rd/l2'
        assert match.path.endswith('S01E02.1080p.WEB-DL.mkv')

    def test_first_match_wins(self):
        files = SEASON_FILES + [
            {'id': 4, 'path': '/Show.S01/Extras/Show.S01E02.Making.Of.mkv', 'bytes': 10, 'selected': 1},
        ]
        links = SEASON_LINKS + ['https://rd/l4']

        match = select_file(files, links, episode=2)

        assert match.index == 1

    def test_no_match_falls_back_to_largest_video(self):
        """An episode missing from a pack streams its largest video."""
        match = select_file(SEASON_FILES, SEASON_LINKS, episode=9)

        assert match.index == 1
        assert match.link == 'https://rd/l2'

    def test_untagged_parts_fall_back_to_largest_video(self):
        files = [
            {'id': 1, 'path': '/Show.Complete/Part A.mkv', 'bytes': 5, 'selected': 1},
            {'id': 2, 'path': '/Show.Complete/Part B.mkv', 'bytes': 9, 'selected': 1},
        ]

        match = select_file(files, ['https://rd/a', 'https://rd/b'], episode=3)

        assert match.link == 'https://rd/b'

    def test_episode_tag_on_folder(self):
        files = [
            {'id': 1, 'path': '/Show.S01E01/video.mkv', 'bytes': 9_000, 'selected': 1},
            {'id': 2, 'path': '/Show.S01E02/video.mkv', 'bytes': 1_000, 'selected': 1},
        ]

        match = select_file(files, ['https://rd/e1', 'https://rd/e2'], episode=2)

        assert match.link == 'https://rd/e2'

    def test_single_video_fallback(self):
        """A pack that resolved to a single video serves that video."""
        files = [
            {'id': 1, 'path': '/Show.S01.Complete/Show.Season.1.mkv', 'bytes': 5_000, 'selected': 1},
            {'id': 2, 'path': '/Show.S01.Complete/readme.txt', 'bytes': 1, 'selected': 1},
        ]
        links = ['https://rd/video', 'https://rd/readme']

        match = select_file(files, links, episode=4)

        assert match.index == 0
        assert match.link == 'https://rd/video'


class TestLargestVideo:
    """Test movie selection."""

    def test_largest_video_without_episode(self):
        match = select_file(SEASON_FILES, SEASON_LINKS, episode=None)

        assert match.index == 1
        assert match.file['bytes'] == 2_000

    def test_non_video_files_ignored(self):
        files = [
            {'id': 1, 'path': '/Movie/Movie.2023.sample.mkv', 'bytes': 50, 'selected': 1},
            {'id': 2, 'path': '/Movie/Movie.2023.iso', 'bytes': 90_000, 'selected': 1},
            {'id': 3, 'path': '/Movie/Movie.2023.1080p.mp4', 'bytes': 40_000, 'selected': 1},
        ]
        links = ['https://rd/sample', 'https://rd/iso', 'https://rd/movie']

        match = select_file(files, links)

        assert match.link == 'https://rd/movie'

    def test_no_video_at_all(self):
        files = [{'id': 1, 'path': '/x/readme.txt', 'bytes': 1, 'selected': 1}]
        assert select_file(files, ['https://rd/readme']) is None


class TestLinkAlignment:
    """Links align with selected files, not with the full file list."""

    def test_unselected_files_do_not_shift_links(self):
        files = [
            {'id': 1, 'path': '/Show/Show.S01E01.sample.mkv', 'bytes': 10, 'selected': 0},
            {'id': 2, 'path': '/Show/Show.S01E01.mkv', 'bytes': 1_000, 'selected': 1},
            {'id': 3, 'path': '/Show/Show.S01E02.mkv', 'bytes': 1_100, 'selected': 1},
        ]
        links = ['https://rd/e1', 'https://rd/e2']

        match = select_file(files, links, episode=2)

        assert match.index == 1
        assert match.link == 'https://rd/e2'

    def test_missing_selected_flag_counts_as_selected(self):
        files = [
            {'id': 1, 'path': '/Movie/Movie.mkv', 'bytes': 1_000},
        ]

        match = select_file(files, ['https://rd/movie'])

        assert match.link == 'https://rd/movie'

    def test_index_beyond_links(self):
        """A match without an aligned link yields no file."""
        assert select_file(SEASON_FILES, ['https://rd/l1'], episode=3) is None

    def test_empty_inputs(self):
        assert select_file([], SEASON_LINKS) is None
        assert select_file(SEASON_FILES, []) is None
        assert select_file(None, None) is None
