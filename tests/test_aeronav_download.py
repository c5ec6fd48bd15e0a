import datetime
import os
import urllib.error

import pytest

import aeronav_download
from aeronav_download import (dates_from_urls, evict_stale_archives, find_geotiff_urls, fix_faa_incorrect_urls,
                              get_chart_archive)

INDEX_HTML = """
<html><body>
<div id="sectional">
  <table>
    <tr><th>Chart</th><th>Current</th><th>Next</th></tr>
    <tr><td>Denver</td>
        <td><a href="https://aeronav.faa.gov/visual/10-01-2026/PDFs/Denver.zip">PDF</a>
            <a href="https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Denver.zip">Geo-TIFF</a></td>
        <td><a href="https://aeronav.faa.gov/visual/11-26-2026/sectional-files/Denver.zip">Geo-TIFF</a></td></tr>
    <tr><td>Seattle</td>
        <td><a href="https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Seattle.zip">Geo-TIFF</a></td></tr>
  </table>
</div>
<div id="other"><table><tr><td>x</td><td><a href="https://elsewhere/01-01-2020/x.zip">Geo-TIFF</a></td></tr></table></div>
</body></html>
"""


def fake_download(payload=b'zip'):
    calls = []

    def download(url, filename):
        calls.append((url, filename))
        with open(filename, 'wb') as f:
            f.write(payload)
        return filename
    return download, calls


def test_cache_hit_makes_no_download(tmp_path, monkeypatch):
    download, calls = fake_download()
    monkeypatch.setattr(aeronav_download, 'download', download)
    (tmp_path / 'foo-02-01-2024.zip').write_bytes(b'cached')

    path, cached = get_chart_archive('https://x/foo.zip', str(tmp_path), 'foo', '02-01-2024')

    assert cached
    assert path == str(tmp_path / 'foo-02-01-2024.zip')
    assert calls == []


def test_stale_archive_evicted_before_fetch(tmp_path, monkeypatch):
    download, calls = fake_download()
    monkeypatch.setattr(aeronav_download, 'download', download)
    (tmp_path / 'foo-01-01-2024.zip').write_bytes(b'old')
    (tmp_path / 'foobar-01-01-2024.zip').write_bytes(b'other chart')

    path, cached = get_chart_archive('https://x/foo.zip', str(tmp_path), 'foo', '02-01-2024')

    assert not cached
    assert calls == [('https://x/foo.zip', path)]
    assert sorted(os.listdir(tmp_path)) == ['foo-02-01-2024.zip', 'foobar-01-01-2024.zip']


def test_evict_keeps_current(tmp_path):
    (tmp_path / 'foo-01-01-2024.zip').write_bytes(b'old')
    (tmp_path / 'foo-02-01-2024.zip').write_bytes(b'new')
    assert evict_stale_archives(str(tmp_path), 'foo', keep='foo-02-01-2024.zip') == ['foo-01-01-2024.zip']
    assert os.listdir(tmp_path) == ['foo-02-01-2024.zip']


def test_failed_download_leaves_no_partial_file(tmp_path, monkeypatch):
    def urlopen(url):
        raise urllib.error.URLError('no route to host')
    monkeypatch.setattr(aeronav_download.urllib.request, 'urlopen', urlopen)

    with pytest.raises(urllib.error.URLError):
        aeronav_download.download('https://x/foo.zip', str(tmp_path / 'foo-02-01-2024.zip'))
    assert os.listdir(tmp_path) == []


def test_find_geotiff_urls():
    urls = find_geotiff_urls(INDEX_HTML, ['sectional'])
    assert urls == [
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Denver.zip',
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Seattle.zip',
    ]


def test_fix_faa_incorrect_urls_uses_most_common_base():
    urls = [
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Denver.zip',
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Seattle.zip',
        'https://aeronav.faa.gov/visual/09-03-2026/sectional-files/Omaha.zip',
    ]
    assert fix_faa_incorrect_urls(urls)[2] == 'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Omaha.zip'
    assert fix_faa_incorrect_urls(urls[:2]) == urls[:2]

    with pytest.raises(ValueError):
        fix_faa_incorrect_urls(['https://aeronav.faa.gov/visual/current/Denver.zip'])


def test_dates_from_urls():
    urls = [
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Denver.zip',
        'https://aeronav.faa.gov/enroute/10-29-2026/DDECUS.zip',
        'https://aeronav.faa.gov/visual/10-01-2026/sectional-files/Seattle.zip',
    ]
    assert dates_from_urls(urls) == [datetime.date(2026, 10, 29), datetime.date(2026, 10, 1)]
