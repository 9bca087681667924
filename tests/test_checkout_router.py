class TestPublicCheckoutRoutes:
    def test_public_checkout_needs_no_authentication(
        self, anonymous_client, user, make_checkout, make_variant
    ):
        checkout = make_checkout(user, slug="black-friday")
        variant = make_variant(checkout, "A", 100)

        response = anonymous_client.get("/api/v1/checkouts/public/black-friday")

        assert response.status_code == 200
        data = response.json()
        assert data["slug"] == "black-friday"
        assert data["selectedVariantId"] == variant.id
        assert data["variants"][0]["trafficShare"] == 100
        # Internal counters stay private
        assert "views" not in data["variants"][0]

    def test_inactive_checkout_is_404(self, anonymous_client, user, make_checkout):
        from gatewayapi.models.checkout import CheckoutStatus

        make_checkout(user, slug="draft", status=CheckoutStatus.DRAFT)

        response = anonymous_client.get("/api/v1/checkouts/public/draft")

        assert response.status_code == 404

    def test_conversion(self, anonymous_client, user, make_checkout, make_variant):
        checkout = make_checkout(user)
        variant = make_variant(checkout, "A", 100)

        response = anonymous_client.post(
            f"/api/v1/checkouts/public/{checkout.slug}/variants/{variant.id}/conversion"
        )

        assert response.status_code == 200
        assert response.json() == {"variantId": variant.id, "conversions": 1}


class TestVariantRoutes:
    def test_traffic_share_cap(self, client, user, make_checkout):
        checkout = make_checkout(user)
        url = f"/api/v1/checkouts/{checkout.id}/variants"

        first = client.post(url, json={"name": "A", "trafficShare": 70})
        rejected = client.post(url, json={"name": "B", "trafficShare": 40})

        assert first.status_code == 201
        assert rejected.status_code == 400
        assert rejected.json()["code"] == "VARIANT_001"

        listing = client.get(url).json()
        assert listing["totalTrafficShare"] == 70
        assert [v["name"] for v in listing["variants"]] == ["A"]

    def test_share_out_of_bounds_is_bad_request(self, client, user, make_checkout):
        checkout = make_checkout(user)

        response = client.post(
            f"/api/v1/checkouts/{checkout.id}/variants",
            json={"name": "A", "trafficShare": 101},
        )

        assert response.status_code == 400

    def test_other_users_checkout_is_404(self, client, other_user, make_checkout):
        checkout = make_checkout(other_user)

        response = client.get(f"/api/v1/checkouts/{checkout.id}/variants")

        assert response.status_code == 404


class TestCheckoutRoutes:
    def test_create_checkout_then_add_variant(self, client, anonymous_client):
        created = client.post(
            "/api/v1/checkouts",
            json={"name": "Launch", "slug": "launch-2026", "metadata": {"campaign": "q3"}},
        )
        assert created.status_code == 201
        checkout = created.json()
        assert checkout["status"] == "ACTIVE"
        assert checkout["metadata"] == {"campaign": "q3"}

        variant = client.post(
            f"/api/v1/checkouts/{checkout['id']}/variants",
            json={"name": "A", "trafficShare": 100},
        )
        public = anonymous_client.get("/api/v1/checkouts/public/launch-2026")

        assert variant.status_code == 201
        assert public.json()["selectedVariantId"] == variant.json()["id"]

    def test_duplicate_slug_is_rejected(self, client, other_user, make_checkout):
        make_checkout(other_user, slug="taken")

        response = client.post("/api/v1/checkouts", json={"name": "Mine", "slug": "taken"})

        assert response.status_code == 400
        assert response.json()["code"] == "CHECKOUT_001"

    def test_slug_must_be_lowercase_words(self, client):
        response = client.post(
            "/api/v1/checkouts", json={"name": "Bad", "slug": "Not A Slug"}
        )

        assert response.status_code == 400

    def test_list_checkouts_skips_deleted_and_counts_variants(
        self, client, user, other_user, make_checkout, make_variant
    ):
        live = make_checkout(user, slug="live")
        make_variant(live, "A", 60)
        make_variant(live, "B", 40)
        make_checkout(user, slug="gone", deleted=True)
        make_checkout(other_user, slug="theirs")

        data = client.get("/api/v1/checkouts").json()

        assert data["pagination"]["total"] == 1
        assert [(c["slug"], c["variantsCount"]) for c in data["checkouts"]] == [("live", 2)]

    def test_list_checkouts_search(self, client, user, make_checkout):
        make_checkout(user, slug="winter-sale")
        make_checkout(user, slug="summer-sale")

        data = client.get("/api/v1/checkouts", params={"search": "winter"}).json()

        assert [c["slug"] for c in data["checkouts"]] == ["winter-sale"]
