"""CLI command tests: bootstrap seeding, user creation and ledger verification."""

from decimal import Decimal

from bookstore.models import CashRegister, Currency, PaymentType, User


class TestSystemInit:

    def test_seeds_once(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['system', 'init'])
        assert first.exit_code == 0, first.output
        assert 'PASS users: 2 created' in first.output

        second = runner.invoke(args=['system', 'init'])
        assert second.exit_code == 0
        assert 'PASS users: 0 created' in second.output

        assert {c.code for c in db_session.query(Currency)} == {'UZS', 'USD', 'RUB'}
        assert db_session.query(Currency).filter_by(is_default=True).one().code == 'UZS'
        assert db_session.query(PaymentType).count() == 3
        assert db_session.query(CashRegister).one().balance == Decimal('0')
        assert db_session.query(User).filter_by(username='admin').one().role == 'ADMIN'

    def test_reset_requires_confirmation(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['system', 'reset-db'])
        assert result.exit_code == 1


class TestUserCommands:

    def test_create_and_list(self, app, db_session, branch):
        runner = app.test_cli_runner()

        created = runner.invoke(args=[
            'users', 'create', '--username', 'anvar', '--password', 'Password123!',
            '--role', 'MANAGER', '--branch-id', str(branch.id),
        ])
        assert created.exit_code == 0, created.output
        assert 'role: MANAGER' in created.output

        listing = runner.invoke(args=['users', 'list'])
        assert 'anvar' in listing.output

    def test_weak_password_fails(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            'users', 'create', '--username', 'weak', '--password', 'short',
        ])
        assert result.exit_code == 1
        assert result.output.startswith('FAIL')


class TestLedgerVerify:

    def test_consistent_store(self, app, db_session, register, set_balance, set_stock, product, warehouse):
        set_balance(register, 1200)
        set_stock(product, warehouse, 3)

        result = app.test_cli_runner().invoke(args=['ledger', 'verify'])

        assert result.exit_code == 0, result.output
        assert 'PASS ledger consistent' in result.output

    def test_drift_exits_nonzero(self, app, db_session, register, set_balance):
        set_balance(register, 1200)
        register.balance = Decimal('1')
        db_session.commit()

        result = app.test_cli_runner().invoke(args=['ledger', 'verify'])

        assert result.exit_code == 1
        assert f'FAIL register={register.id}' in result.output
