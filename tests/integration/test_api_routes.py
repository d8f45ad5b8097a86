"""
Integration tests for API routes.
Tests the auth, users, matches and plans blueprints and the health check.
"""
from urllib.parse import urlparse, parse_qs

import json


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check(self, client, db_session):
        """Health check should return 200 with Redis disabled."""
        response = client.get('/health')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['database'] == 'connected'
        assert data['redis'] == 'disabled'


class TestAuthRoutes:

    def test_register(self, client, db_session):
        response = client.post('/auth/register', json={
            'name': 'Ana', 'email': 'ana@example.com', 'password': 'secret123'
        })
        assert response.status_code == 201

        data = json.loads(response.data)
        assert 'access_token' in data
        assert 'refresh_token' in data
        assert data['user']['email'] == 'ana@example.com'
        assert 'password_hash' not in data['user']

    def test_register_missing_field(self, client, db_session):
        response = client.post('/auth/register', json={'email': 'ana@example.com', 'password': 'x' * 8})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['code'] == 'VALIDATION_ERROR'
        assert data['args'] == {'field': 'name'}

    def test_register_duplicate_email(self, client, make_user):
        make_user(email='ana@example.com')
        response = client.post('/auth/register', json={
            'name': 'Ana', 'email': 'ana@example.com', 'password': 'secret123'
        })
        assert response.status_code == 409
        assert json.loads(response.data)['code'] == 'CONFLICT'

    def test_login_and_me(self, client, make_user):
        user_id = make_user(email='ana@example.com', password='secret123')
        response = client.post('/auth/login', json={'email': 'ana@example.com', 'password': 'secret123'})
        assert response.status_code == 200
        token = json.loads(response.data)['access_token']

        response = client.get('/auth/me', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 200
        assert json.loads(response.data)['id'] == user_id

    def test_login_invalid(self, client, make_user):
        make_user(email='ana@example.com', password='secret123')
        response = client.post('/auth/login', json={'email': 'ana@example.com', 'password': 'wrong-one'})
        assert response.status_code == 401
        assert json.loads(response.data)['key'] == 'auth.INVALID_CREDENTIALS'

    def test_refresh(self, client, make_user):
        make_user(email='ana@example.com', password='secret123')
        login = json.loads(client.post('/auth/login', json={
            'email': 'ana@example.com', 'password': 'secret123'
        }).data)

        response = client.post('/auth/refresh', json={'refresh_token': login['refresh_token']})
        assert response.status_code == 200
        assert 'access_token' in json.loads(response.data)

    def test_me_without_token(self, client, db_session):
        response = client.get('/auth/me')
        assert response.status_code == 401
        assert json.loads(response.data)['code'] == 'UNAUTHORIZED'

    def test_me_with_garbage_token(self, client, db_session):
        response = client.get('/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
        assert response.status_code == 401


class TestOAuthRoutes:

    def test_redirects_to_provider(self, client, db_session):
        response = client.get('/auth/google')
        assert response.status_code == 302
        location = urlparse(response.headers['Location'])
        assert location.netloc == 'accounts.google.com'

        with client.session_transaction() as session:
            assert parse_qs(location.query)['state'] == [session['oauth_state']]

    def test_unknown_provider(self, client, db_session):
        response = client.get('/auth/myspace')
        assert response.status_code == 404

    def test_callback_success(self, client, db_session, mocker):
        mocker.patch('gamehub.oauth.fetch_profile', return_value={
            'provider': 'google',
            'provider_id': 'g-1',
            'email': 'gamer@example.com',
            'name': 'Gamer',
            'avatar_url': None,
        })
        with client.session_transaction() as session:
            session['oauth_state'] = 'abc'

        response = client.get('/auth/google/callback?code=xyz&state=abc')
        assert response.status_code == 302
        location = urlparse(response.headers['Location'])
        assert location.path == '/auth/callback'
        assert 'access_token' in parse_qs(location.query)

    def test_callback_state_mismatch(self, client, db_session):
        with client.session_transaction() as session:
            session['oauth_state'] = 'abc'

        response = client.get('/auth/google/callback?code=xyz&state=evil')
        assert response.status_code == 302
        location = urlparse(response.headers['Location'])
        assert location.path == '/auth/error'
        assert 'message' in parse_qs(location.query)


class TestUserRoutes:

    def test_public_create_ignores_role(self, client, db_session):
        response = client.post('/users', json={
            'name': 'Ana', 'email': 'ana@example.com', 'password': 'secret123', 'role': 'admin'
        })
        assert response.status_code == 201
        assert json.loads(response.data)['role'] == 'user'

    def test_list_requires_admin(self, client, make_user, auth_headers):
        user_id = make_user()
        admin_id = make_user(role='admin')

        assert client.get('/users', headers=auth_headers(user_id)).status_code == 403

        response = client.get('/users', headers=auth_headers(admin_id))
        assert response.status_code == 200
        assert json.loads(response.data)['count'] == 2

    def test_update_me(self, client, make_user, auth_headers):
        user_id = make_user()
        response = client.patch('/users/me', json={'name': 'Renamed'}, headers=auth_headers(user_id))
        assert response.status_code == 200
        assert json.loads(response.data)['name'] == 'Renamed'

    def test_cannot_update_someone_else(self, client, make_user, auth_headers):
        user_id = make_user()
        other_id = make_user()
        response = client.patch(f'/users/{other_id}', json={'name': 'X'}, headers=auth_headers(user_id))
        assert response.status_code == 403

    def test_change_password(self, client, make_user, auth_headers):
        user_id = make_user(email='ana@example.com', password='secret123')
        response = client.post('/users/me/change-password', json={
            'current_password': 'secret123', 'new_password': 'brandnew1'
        }, headers=auth_headers(user_id))
        assert response.status_code == 200

        response = client.post('/auth/login', json={'email': 'ana@example.com', 'password': 'brandnew1'})
        assert response.status_code == 200

    def test_delete_self(self, client, make_user, auth_headers):
        user_id = make_user()
        headers = auth_headers(user_id)
        assert client.delete(f'/users/{user_id}', headers=headers).status_code == 204
        # the token no longer resolves to an account
        assert client.get('/users/me', headers=headers).status_code == 401

    def test_get_missing_user(self, client, make_user, auth_headers):
        user_id = make_user()
        response = client.get('/users/nope', headers=auth_headers(user_id))
        assert response.status_code == 404

    def test_upgrade_and_downgrade(self, client, make_user, auth_headers):
        user_id = make_user()
        headers = auth_headers(user_id)

        response = client.post(f'/users/{user_id}/upgrade', headers=headers)
        assert response.status_code == 200
        assert json.loads(response.data)['plan'] == 'pro'

        response = client.post(f'/users/{user_id}/upgrade', headers=headers)
        assert response.status_code == 400
        assert json.loads(response.data)['code'] == 'INVALID_STATE'

        response = client.post(f'/users/{user_id}/downgrade', headers=headers)
        assert json.loads(response.data)['plan'] == 'free'

    def test_enterprise_requires_admin(self, client, make_user, auth_headers):
        user_id = make_user()
        admin_id = make_user(role='admin')

        response = client.post(f'/users/{user_id}/plan', json={'plan': 'enterprise'},
                               headers=auth_headers(user_id))
        assert response.status_code == 403

        response = client.post(f'/users/{user_id}/plan', json={'plan': 'enterprise'},
                               headers=auth_headers(admin_id))
        assert response.status_code == 200
        assert json.loads(response.data)['plan'] == 'enterprise'


class TestMatchRoutes:

    def test_create_match(self, client, players, auth_headers):
        response = client.post('/matches', json={
            'game_id': 'game-1', 'team_count': 2, 'players': players
        }, headers=auth_headers(players[0]))
        assert response.status_code == 201

        data = json.loads(response.data)
        assert data['status'] == 'waiting_teams'
        assert len(data['players']) == 4
        assert data['teams'] == []

    def test_create_requires_auth(self, client, players):
        response = client.post('/matches', json={'game_id': 'game-1', 'players': players})
        assert response.status_code == 401

    def test_create_invalid_players(self, client, players, auth_headers):
        response = client.post('/matches', json={
            'game_id': 'game-1', 'players': [players[0], 'ghost']
        }, headers=auth_headers(players[0]))
        assert response.status_code == 400
        assert json.loads(response.data)['key'] == 'matches.INVALID_PLAYERS'

    def test_free_plan_monthly_limit(self, client, players, make_match, auth_headers):
        for _ in range(10):
            make_match(players[0], players)

        response = client.post('/matches', json={
            'game_id': 'game-1', 'players': players
        }, headers={**auth_headers(players[0]), 'Accept-Language': 'en'})
        assert response.status_code == 403

        data = json.loads(response.data)
        assert data['key'] == 'plans.MATCH_LIMIT_REACHED'
        assert data['args'] == {'limit': 10, 'plan': 'Free'}

    def test_deleting_a_match_does_not_free_quota(self, client, players, make_match, auth_headers):
        """Matches created this month stay counted after they are deleted."""
        match_ids = [make_match(players[0], players) for _ in range(10)]
        headers = auth_headers(players[0])
        body = {'game_id': 'game-1', 'players': players}
        assert client.post('/matches', json=body, headers=headers).status_code == 403

        assert client.delete(f'/matches/{match_ids[0]}', headers=headers).status_code == 204
        assert client.get(f'/matches/{match_ids[0]}', headers=headers).status_code == 404

        response = client.post('/matches', json=body, headers=headers)
        assert response.status_code == 403
        assert json.loads(response.data)['key'] == 'plans.MATCH_LIMIT_REACHED'

    def test_manual_teams(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players)
        headers = auth_headers(players[0])
        body = {'teams': [
            {'name': 'Red', 'players': players[:2]},
            {'name': 'Blue', 'players': players[2:]},
        ]}

        response = client.post(f'/matches/{match_id}/teams', json=body, headers=headers)
        assert response.status_code == 201
        teams = json.loads(response.data)['teams']
        assert [t['name'] for t in teams] == ['Red', 'Blue']

        match = json.loads(client.get(f'/matches/{match_id}', headers=headers).data)
        assert match['status'] == 'in_progress'
        assert len(match['teams']) == 2

        # second attempt is rejected, localized
        response = client.post(f'/matches/{match_id}/teams', json=body,
                               headers={**headers, 'Accept-Language': 'en'})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['code'] == 'INVALID_STATE'
        assert data['error'] == 'Teams have already been created for this match'

    def test_manual_teams_foreign_player(self, client, players, make_user, make_match, auth_headers):
        outsider = make_user()
        match_id = make_match(players[0], players)
        response = client.post(f'/matches/{match_id}/teams', json={'teams': [
            {'name': 'A', 'players': players[:2]},
            {'name': 'B', 'players': [players[2], outsider]},
        ]}, headers=auth_headers(players[0]))
        assert response.status_code == 400

        data = json.loads(response.data)
        assert data['code'] == 'VALIDATION_ERROR'
        assert data['args'] == {'players': [outsider]}

    def test_second_random_formation_rejected(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players)
        headers = auth_headers(players[0])
        assert client.post(f'/matches/{match_id}/teams/random', headers=headers).status_code == 201

        response = client.post(f'/matches/{match_id}/teams/random', headers=headers)
        assert response.status_code == 400
        assert json.loads(response.data)['key'] == 'matches.TEAMS_ALREADY_CREATED'

    def test_manual_after_random_formation_rejected(self, client, players, make_match, auth_headers):
        """Teams are formed once per match, whichever mode formed them."""
        match_id = make_match(players[0], players)
        headers = auth_headers(players[0])
        assert client.post(f'/matches/{match_id}/teams/random', headers=headers).status_code == 201

        response = client.post(f'/matches/{match_id}/teams', json={'teams': [
            {'name': 'Red', 'players': players[:2]},
            {'name': 'Blue', 'players': players[2:]},
        ]}, headers=headers)
        assert response.status_code == 400
        assert json.loads(response.data)['key'] == 'matches.TEAMS_ALREADY_CREATED'

        match = json.loads(client.get(f'/matches/{match_id}', headers=headers).data)
        assert [t['name'] for t in match['teams']] == ['Team 1', 'Team 2']

    def test_manual_teams_bad_shape(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players)
        response = client.post(f'/matches/{match_id}/teams', json={
            'teams': [{'name': 'Solo', 'players': players}]
        }, headers=auth_headers(players[0]))
        assert response.status_code == 400

    def test_manual_teams_wrong_count(self, client, make_user, make_match, auth_headers):
        users = [make_user() for _ in range(6)]
        match_id = make_match(users[0], users, team_count=3)
        response = client.post(f'/matches/{match_id}/teams', json={'teams': [
            {'name': 'A', 'players': users[:3]},
            {'name': 'B', 'players': users[3:]},
        ]}, headers=auth_headers(users[0]))
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['key'] == 'matches.INVALID_TEAM_COUNT'
        assert data['args'] == {'expected': 3, 'received': 2}

    def test_random_teams(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players, mode='random')
        response = client.post(f'/matches/{match_id}/teams/random', json={'seed': 'abc'},
                               headers=auth_headers(players[0]))
        assert response.status_code == 201

        teams = json.loads(response.data)['teams']
        assert [len(t['players']) for t in teams] == [2, 2]
        assigned = sorted(p['id'] for t in teams for p in t['players'])
        assert assigned == sorted(players)

    def test_teams_for_missing_match(self, client, players, auth_headers):
        response = client.post('/matches/nope/teams/random', headers=auth_headers(players[0]))
        assert response.status_code == 404
        assert json.loads(response.data)['key'] == 'matches.MATCH_NOT_FOUND'

    def test_finish_match(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players)
        headers = auth_headers(players[0])

        response = client.patch(f'/matches/{match_id}', json={'status': 'finished'}, headers=headers)
        assert response.status_code == 400

        client.post(f'/matches/{match_id}/teams/random', headers=headers)
        response = client.patch(f'/matches/{match_id}', json={'status': 'finished'}, headers=headers)
        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'finished'

    def test_list_and_delete(self, client, players, make_match, auth_headers):
        match_id = make_match(players[0], players)
        headers = auth_headers(players[0])

        data = json.loads(client.get('/matches', headers=headers).data)
        assert data['count'] == 1

        assert client.delete(f'/matches/{match_id}', headers=headers).status_code == 204
        assert client.get(f'/matches/{match_id}', headers=headers).status_code == 404


class TestPlanRoutes:

    def test_list_plans(self, client, db_session):
        data = json.loads(client.get('/plans').data)
        assert [p['id'] for p in data['plans']] == ['free', 'basic', 'pro', 'enterprise']

    def test_get_plan(self, client, db_session):
        response = client.get('/plans/basic')
        assert response.status_code == 200
        assert json.loads(response.data)['price'] == 1990

    def test_unknown_plan_localized(self, client, db_session):
        response = client.get('/plans/platinum', headers={'Accept-Language': 'en'})
        assert response.status_code == 404
        data = json.loads(response.data)
        assert data['key'] == 'plans.PLAN_NOT_FOUND'
        assert 'platinum' in data['error']

    def test_compare(self, client, db_session):
        plans = json.loads(client.get('/plans/compare').data)['plans']
        assert [p['id'] for p in plans if p['recommended']] == ['pro']

    def test_my_plan_usage(self, client, players, make_match, auth_headers):
        make_match(players[0], players)
        make_match(players[0], players)

        data = json.loads(client.get('/plans/my-plan', headers=auth_headers(players[0])).data)
        assert data['plan_id'] == 'free'
        assert data['usage']['matches_this_month'] == 2

    def test_upgrade_options(self, client, make_user, auth_headers):
        user_id = make_user(plan='basic')
        data = json.loads(client.get('/plans/upgrade-options', headers=auth_headers(user_id)).data)
        assert [p['id'] for p in data['plans']] == ['pro', 'enterprise']
