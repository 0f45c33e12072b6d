"""
Unit tests for ContactMiner

Email, phone and social-profile mining from raw website markup.
"""

import pytest

from src.pipeline.contact_miner import ContactMiner, mine
from src.schemas import SOCIAL_PLATFORMS, PhonePolicy


class TestEmailMining:

    def setup_method(self):
        self.miner = ContactMiner()

    def test_mailto_addresses_come_first(self):
        html = '<p>Write to c@d.org</p><a href="mailto:a@b.com">Email us</a>'
        assert self.miner.mine(html).emails == ["a@b.com", "c@d.org"]

    def test_mailto_then_plain_text(self):
        html = '<a href="mailto:a@b.com">Write</a> <p>or c@d.org</p>'
        assert self.miner.mine(html).emails == ["a@b.com", "c@d.org"]

    def test_addresses_lowercased_and_deduped(self):
        html = '<a href="mailto:Info@BlueDoor.example">Info@BlueDoor.example</a> info@bluedoor.example'
        assert self.miner.mine(html).emails == ["info@bluedoor.example"]

    def test_at_most_ten_addresses(self):
        html = " ".join(f"user{i}@example.com" for i in range(15))
        emails = self.miner.mine(html).emails
        assert len(emails) == 10
        assert emails[0] == "user0@example.com"

    def test_asset_names_are_not_addresses(self):
        html = '<img src="/img/logo@2x.png"> <link href="/css/site@1.5.css"> hello@bluedoor.example'
        assert self.miner.mine(html).emails == ["hello@bluedoor.example"]


class TestPhoneMining:

    def setup_method(self):
        self.miner = ContactMiner()

    def test_tel_link_normalised(self):
        html = '<a href="tel:+1 (555) 123-4567">Call</a>'
        assert self.miner.mine(html).phones == ["5551234567"]

    def test_keep_all_policy(self):
        miner = ContactMiner(PhonePolicy.KEEP_ALL)
        html = '<a href="tel:+1 (555) 123-4567">Call</a>'
        assert miner.mine(html).phones == ["15551234567"]

    def test_tel_links_before_plain_numbers(self):
        html = '<p>Fax 555-222-3333</p><a href="tel:5551112222">Call</a>'
        assert self.miner.mine(html).phones == ["5551112222", "5552223333"]

    def test_short_digit_runs_ignored(self):
        html = "<p>Suite 12-34, open 9-5</p>"
        assert self.miner.mine(html).phones == []

    def test_at_most_five_numbers(self):
        html = " ".join(f"555-000-000{i}" for i in range(1, 8))
        phones = self.miner.mine(html).phones
        assert len(phones) == 5
        assert all(len(p) >= 7 and p.isdigit() for p in phones)


class TestSocialMining:

    def setup_method(self):
        self.miner = ContactMiner()

    def test_all_platforms_present(self):
        socials = self.miner.mine("<html></html>").socials
        assert set(socials) == set(SOCIAL_PLATFORMS)
        assert all(links == [] for links in socials.values())

    def test_tracking_pixel_excluded_profile_kept(self):
        html = (
            '<img src="https://www.facebook.com/tr?id=123&ev=PageView">'
            '<a href="https://www.facebook.com/examplebiz">Facebook</a>'
        )
        assert self.miner.mine(html).socials["facebook"] == ["https://www.facebook.com/examplebiz"]

    def test_profile_starting_with_excluded_segment_kept(self):
        html = '<a href="https://www.facebook.com/trattoria">FB</a>'
        assert self.miner.mine(html).socials["facebook"] == ["https://www.facebook.com/trattoria"]

    def test_share_widgets_excluded(self):
        html = (
            '<a href="https://www.facebook.com/sharer/sharer.php?u=x">Share</a>'
            '<a href="https://twitter.com/intent/tweet?text=hi">Tweet</a>'
        )
        socials = self.miner.mine(html).socials
        assert socials["facebook"] == []
        assert socials["twitter"] == []

    @pytest.mark.parametrize("html,platform", [
        ('<script async src="https://platform.twitter.com/widgets.js"></script>', "twitter"),
        ('<script src="//twitter.com/widgets.js"></script>', "twitter"),
        ('<a href="https://twitter.com/search?q=bakery">Search</a>', "twitter"),
        ('<a href="https://www.facebook.com/share.php?u=https://bluedoor.example">Share</a>', "facebook"),
        ('<a href="https://m.facebook.com/sharer.php?u=x">Share</a>', "facebook"),
        ('<a href="https://www.facebook.com/share/abc123">Share</a>', "facebook"),
        ('<a href="https://www.facebook.com/login.php">Log in</a>', "facebook"),
        ('<a href="https://www.instagram.com/p/Cx1abc/">Post</a>', "instagram"),
        ('<script src="https://www.instagram.com/embed.js"></script>', "instagram"),
        ('<a href="https://t.me/share/url?url=x">Telegram</a>', "telegram"),
    ])
    def test_embeds_and_site_sections_excluded(self, html, platform):
        assert self.miner.mine(html).socials[platform] == []

    def test_widget_script_does_not_hide_real_profile(self):
        html = (
            '<script src="https://platform.twitter.com/widgets.js"></script>'
            '<a href="https://twitter.com/examplebiz">Twitter</a>'
        )
        assert self.miner.mine(html).socials["twitter"] == ["https://twitter.com/examplebiz"]

    def test_scheme_less_link_gets_https(self):
        html = "<p>Follow instagram.com/examplebiz</p>"
        assert self.miner.mine(html).socials["instagram"] == ["https://instagram.com/examplebiz"]

    def test_protocol_relative_link_uses_site_scheme(self):
        html = '<a href="//www.instagram.com/examplebiz">IG</a>'
        socials = self.miner.mine(html, "http://bluedoor.example/").socials
        assert socials["instagram"] == ["http://www.instagram.com/examplebiz"]

    def test_domain_suffix_not_mistaken_for_x(self):
        html = '<a href="https://www.wix.com/website">Made with Wix</a>'
        assert self.miner.mine(html).socials["twitter"] == []

    @pytest.mark.parametrize("html,platform,expected", [
        ('<a href="https://x.com/examplebiz">X</a>', "twitter", "https://x.com/examplebiz"),
        ('<a href="https://www.linkedin.com/company/example-biz/">in</a>', "linkedin",
         "https://www.linkedin.com/company/example-biz"),
        ('<a href="https://wa.me/15551234567">WhatsApp</a>', "whatsapp", "https://wa.me/15551234567"),
        ('<a href="https://t.me/examplebiz">Telegram</a>', "telegram", "https://t.me/examplebiz"),
    ])
    def test_platform_links(self, html, platform, expected):
        assert self.miner.mine(html).socials[platform] == [expected]

    def test_repeated_links_deduped(self):
        html = '<a href="https://x.com/examplebiz">X</a><a href="https://x.com/examplebiz">X</a>'
        assert self.miner.mine(html).socials["twitter"] == ["https://x.com/examplebiz"]


def test_module_level_mine_handles_empty_input():
    result = mine("")
    assert result.is_empty
    assert mine(None).emails == []
