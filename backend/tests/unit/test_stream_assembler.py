"""
Unit tests for the Stream Assembler

Tests for backend/tamilarr/services/stream_assembler.py covering:
- Title formatting for episodes, packs and movies
- Deduplication and sort order
- Debrid descriptors (ready URL or resolve link)
- Peer-to-peer descriptors with tracker and DHT sources
"""

import pytest
from unittest.mock import AsyncMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tamilarr.models import Base, MediaIdentity, ProviderSnapshot, ReleaseCandidate
from tamilarr.schemas.responses import StreamDescriptor
from tamilarr.services.resolution_engine import DebridResolutionEngine
from tamilarr.services.stream_assembler import (
    StreamAssembler,
    build_movie_title,
    build_series_title,
    dedupe_streams,
    sort_streams,
)


FP_EPISODE = '1' * 40
FP_PACK = '2' * 40
FP_OTHER_SEASON = '3' * 40
FP_MOVIE_HD = '4' * 40
FP_MOVIE_SD = '5' * 40

TRACKERS = ['udp://tracker.example.org:1337/announce', 'https://tracker.example.net/announce']


@pytest.fixture
def test_db():
    """In-memory database with one series and one movie."""
    engine = create_engine('sqlite:///:memory:')
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()

    db.add_all([
        MediaIdentity(tmdb_id='100', imdb_id='tt0000100', media_type='series', title='Vilangu'),
        MediaIdentity(tmdb_id='200', imdb_id='tt0000200', media_type='movie', title='Jailer', year=2023),
        ReleaseCandidate(tmdb_id='100', season=1, episode=2, episode_end=2,
                         infohash=FP_EPISODE, quality='720p', language='Tamil'),
        ReleaseCandidate(tmdb_id='100', season=1, episode=1, episode_end=999,
                         infohash=FP_PACK, quality='1080p', language='Tamil'),
        ReleaseCandidate(tmdb_id='100', season=2, episode=1, episode_end=999,
                         infohash=FP_OTHER_SEASON, quality='1080p', language='Tamil'),
        ReleaseCandidate(tmdb_id='200', infohash=FP_MOVIE_HD, quality='1080p', language='Tamil'),
        ReleaseCandidate(tmdb_id='200', infohash=FP_MOVIE_SD, quality=None, language=None),
    ])
    db.commit()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def client():
    mock = AsyncMock()
    mock.unrestrict_link.side_effect = lambda link: {'download': f'{link}/direct'}
    return mock


def series(db):
    return MediaIdentity.find_by_imdb_id(db, 'tt0000100')


def movie(db):
    return MediaIdentity.find_by_imdb_id(db, 'tt0000200')


def descriptor(quality=None, language=None, url=None, info_hash=None):
    return StreamDescriptor(
        name='x', title='x', url=url, info_hash=info_hash, quality=quality, language=language
    )


class TestTitles:

    def test_single_episode(self):
        assert build_series_title(1, 2, 2, '1080p', 'Tamil') == 'S01 | Episode 02 | Tamil\n1080p'

    def test_episode_without_end(self):
        assert build_series_title(3, 7, None, '720p', None) == 'S03 | Episode 07\n720p'

    def test_season_pack(self):
        assert build_series_title(1, 1, 999, None, 'Tamil') == 'S01 | Season Pack | Tamil\nSD'

    def test_episode_range(self):
        assert build_series_title(2, 1, 10, '480p', None) == 'S02 | Episodes 01-10\n480p'

    def test_movie(self):
        assert build_movie_title('Jailer', '4K', 'Tamil') == 'Jailer | Tamil\n4K'
        assert build_movie_title('Jailer', None, None) == 'Jailer\nSD'


class TestOrdering:

    def test_dedupe_keeps_first(self):
        first = descriptor('1080p', 'Tamil', url='https://a')
        duplicate = descriptor('1080p', 'TAMIL', url='https://a')
        other = descriptor('1080p', 'Tamil', url='https://b')

        assert dedupe_streams([first, duplicate, other]) == [first, other]

    def test_dedupe_distinguishes_debrid_and_p2p(self):
        debrid = descriptor('1080p', 'Tamil', url='https://a')
        p2p = descriptor('1080p', 'Tamil', info_hash='a' * 40)

        assert len(dedupe_streams([debrid, p2p])) == 2

    def test_missing_quality_dedupes_as_sd(self):
        a = descriptor(None, None, info_hash='a' * 40)
        b = descriptor('SD', 'na', info_hash='a' * 40)

        assert dedupe_streams([a, b]) == [a]

    def test_sort_order(self):
        p2p_4k = descriptor('4K', 'Tamil', info_hash='a' * 40)
        rd_720 = descriptor('720p', 'Tamil', url='https://720')
        rd_2160 = descriptor('2160p', 'Tamil', url='https://2160')
        rd_odd = descriptor('HDCAM', 'Tamil', url='https://cam')
        rd_sd = descriptor(None, 'Tamil', url='https://sd-none')
        rd_sd_label = descriptor('SD', 'Tamil', url='https://sd')
        rd_1080_none = descriptor('1080p', None, url='https://1080-none')
        rd_1080_eng = descriptor('1080p', 'english', url='https://1080-en')
        rd_1080_tam = descriptor('1080p', 'Tamil', url='https://1080-ta')

        ordered = sort_streams([
            p2p_4k, rd_720, rd_odd, rd_sd, rd_sd_label, rd_1080_none, rd_1080_tam, rd_2160, rd_1080_eng
        ])

        assert ordered == [
            rd_2160, rd_1080_eng, rd_1080_tam, rd_1080_none, rd_720, rd_sd_label, rd_odd, rd_sd, p2p_4k
        ]

    def test_empty_language_sorts_as_missing(self):
        blank = descriptor('1080p', '', url='https://blank')
        telugu = descriptor('1080p', 'Telugu', url='https://te')

        assert sort_streams([blank, telugu]) == [telugu, blank]


class TestPeerToPeer:

    @pytest.mark.asyncio
    async def test_episode_streams(self, test_db):
        assembler = StreamAssembler(test_db, engine=None, trackers=TRACKERS, public_url='http://addon')

        streams = await assembler.build_streams(series(test_db), 'series', season=1, episode=2)

        assert [s.info_hash for s in streams] == [FP_PACK, FP_EPISODE]
        pack = streams[0]
        assert pack.name == '[P2P] 1080p'
        assert pack.title == 'S01 | Season Pack | Tamil\n1080p'
        assert pack.url is None
        assert pack.sources == [
            'tracker:udp://tracker.example.org:1337/announce',
            'tracker:http://tracker.example.net/announce',
            f'dht:{FP_PACK}',
        ]

    @pytest.mark.asyncio
    async def test_episode_outside_releases(self, test_db):
        assembler = StreamAssembler(test_db, trackers=TRACKERS)

        streams = await assembler.build_streams(series(test_db), 'series', season=1, episode=3)

        assert [s.info_hash for s in streams] == [FP_PACK]

    @pytest.mark.asyncio
    async def test_series_without_episode(self, test_db):
        assembler = StreamAssembler(test_db, trackers=TRACKERS)

        assert await assembler.build_streams(series(test_db), 'series', season=1) == []

    @pytest.mark.asyncio
    async def test_movie_streams(self, test_db):
        assembler = StreamAssembler(test_db, trackers=TRACKERS)

        streams = await assembler.build_streams(movie(test_db), 'movie')

        assert [s.info_hash for s in streams] == [FP_MOVIE_HD, FP_MOVIE_SD]
        assert streams[0].title == 'Jailer | Tamil\n1080p'
        assert streams[1].name == '[P2P] SD'
        assert streams[1].title == 'Jailer\nSD'


class TestDebrid:

    @pytest.mark.asyncio
    async def test_ready_snapshot_gives_direct_url(self, test_db, client):
        ProviderSnapshot.upsert(
            test_db, FP_PACK, 'RD1', 'downloaded',
            files=[
                {'id': 1, 'path': '/Vilangu.S01/Vilangu.S01E01.1080p.mkv', 'bytes': 10, 'selected': 1},
                {'id': 2, 'path': '/Vilangu.S01/Vilangu.S01E02.1080p.mkv', 'bytes': 10, 'selected': 1},
            ],
            links=['https://rd/e1', 'https://rd/e2'],
        )
        engine = DebridResolutionEngine(test_db, client)
        assembler = StreamAssembler(test_db, engine=engine, public_url='http://addon', include_p2p=False)

        streams = await assembler.build_streams(series(test_db), 'series', season=1, episode=2)

        ready, pending = streams
        assert ready.name == '[RD+] 1080p'
        assert ready.url == 'https://rd/e2/direct'
        assert ready.title == 'S01 | Season Pack | Tamil\n1080p\nVilangu.S01/Vilangu.S01E02.1080p.mkv'
        assert pending.name == '[RD] 720p'
        assert pending.url == f'http://addon/resolve/{FP_EPISODE}/2'
        assert pending.title == 'S01 | Episode 02 | Tamil\n720p\nClick to Download'
        client.add_magnet.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ready_snapshot_without_video(self, test_db, client):
        ProviderSnapshot.upsert(
            test_db, FP_PACK, 'RD1', 'downloaded',
            files=[
                {'id': 1, 'path': '/Vilangu.S01/Vilangu.S01.part1.rar', 'bytes': 10, 'selected': 1},
                {'id': 2, 'path': '/Vilangu.S01/Vilangu.S01.part2.rar', 'bytes': 10, 'selected': 1},
            ],
            links=['https://rd/p1', 'https://rd/p2'],
        )
        engine = DebridResolutionEngine(test_db, client)
        assembler = StreamAssembler(test_db, engine=engine, public_url='http://addon', include_p2p=False)

        streams = await assembler.build_streams(series(test_db), 'series', season=1, episode=2)

        pack = next(s for s in streams if FP_PACK in s.url)
        assert pack.title.endswith('\nFile not found')

    @pytest.mark.asyncio
    async def test_movie_resolve_link_uses_episode_one(self, test_db, client):
        engine = DebridResolutionEngine(test_db, client)
        assembler = StreamAssembler(test_db, engine=engine, public_url='http://addon/', include_p2p=False)

        streams = await assembler.build_streams(movie(test_db), 'movie')

        assert [s.url for s in streams] == [
            f'http://addon/resolve/{FP_MOVIE_HD}/1',
            f'http://addon/resolve/{FP_MOVIE_SD}/1',
        ]
        assert streams[1].name == '[RD] SD'

    @pytest.mark.asyncio
    async def test_p2p_supplement(self, test_db, client):
        engine = DebridResolutionEngine(test_db, client)
        assembler = StreamAssembler(test_db, engine=engine, trackers=TRACKERS, include_p2p=True)

        streams = await assembler.build_streams(movie(test_db), 'movie')

        assert [s.is_debrid for s in streams] == [True, True, False, False]
