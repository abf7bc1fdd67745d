"""
Tests for the print-request lifecycle engine (core.lifecycle).

Test Coverage:
- Request creation (model/maker/material checks, maker notification)
- Transition table, including terminal states
- Authorization rules (admin, assigned maker, requesting customer)
- Lifecycle timestamps and the maker completed-print counter
- Notifications sent after commit and never affecting the outcome
- Rollback of the counter together with the status
- Concurrent transitions on the same request
"""

import threading
import time
from decimal import Decimal
from smtplib import SMTPException
from unittest import mock

from django.core import mail
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase
from rest_framework.exceptions import NotFound, PermissionDenied

from core import lifecycle
from core.exceptions import InvalidTransition, UnsupportedMaterial
from core.models import MakerProfile, PrintRequest

from .utils import create_admin, create_customer, create_listing, create_maker


class LifecycleTestBase(TestCase):

    def setUp(self):
        self.customer = create_customer()
        self.other_customer = create_customer(email='other.customer@example.com', name='Other Customer')
        self.maker = create_maker()
        self.other_maker = create_maker(email='other.maker@example.com', name='Other Maker')
        self.admin = create_admin()
        self.listing = create_listing()

    def _create_request(self, status='REQUESTED', **extra):
        print_request = PrintRequest.objects.create(
            model=self.listing,
            customer=self.customer,
            maker=self.maker,
            material='PLA',
            **extra
        )
        if status != 'REQUESTED':
            PrintRequest.objects.filter(pk=print_request.pk).update(status=status)
            print_request.refresh_from_db()
        return print_request


class CreatePrintRequestTests(LifecycleTestBase):

    def test_creates_requested_print_request(self):
        print_request = lifecycle.create_print_request(
            self.customer, self.listing.pk, self.maker.pk, 'PETG',
            quantity=3, color='Black', notes='Matte please', urgency='High'
        )

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'REQUESTED')
        self.assertEqual(print_request.customer, self.customer)
        self.assertEqual(print_request.maker, self.maker)
        self.assertEqual(print_request.quantity, 3)
        self.assertEqual(print_request.urgency, 'High')
        self.assertIsNone(print_request.accepted_at)

    def test_notifies_maker_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            lifecycle.create_print_request(self.customer, self.listing.pk, self.maker.pk, 'PLA')

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.maker.email])
        self.assertIn('New Print Request', mail.outbox[0].subject)
        self.assertIn(self.listing.title, mail.outbox[0].body)

    def test_no_email_before_commit(self):
        lifecycle.create_print_request(self.customer, self.listing.pk, self.maker.pk, 'PLA')

        self.assertEqual(len(mail.outbox), 0)

    def test_unsupported_material_is_rejected(self):
        with self.assertRaises(UnsupportedMaterial) as ctx:
            lifecycle.create_print_request(self.customer, self.listing.pk, self.maker.pk, 'TPU')

        self.assertEqual(ctx.exception.supported_materials, ['PLA', 'PETG'])
        self.assertEqual(str(ctx.exception.detail), 'Maker does not support material: TPU')
        self.assertFalse(PrintRequest.objects.exists())

    def test_missing_model(self):
        with self.assertRaisesMessage(NotFound, 'Model not found'):
            lifecycle.create_print_request(self.customer, 999999, self.maker.pk, 'PLA')

    def test_inactive_maker(self):
        self.maker.is_active = False
        self.maker.save()

        with self.assertRaisesMessage(NotFound, 'Maker not found or inactive'):
            lifecycle.create_print_request(self.customer, self.listing.pk, self.maker.pk, 'PLA')

    def test_target_must_be_a_maker(self):
        with self.assertRaisesMessage(NotFound, 'Maker not found or inactive'):
            lifecycle.create_print_request(self.customer, self.listing.pk, self.other_customer.pk, 'PLA')


class TransitionTableTests(LifecycleTestBase):

    def test_full_happy_path_stamps_timestamps(self):
        print_request = self._create_request()

        lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED', quoted_price=Decimal('25.50'))
        lifecycle.transition_print_request(print_request.pk, self.maker, 'PRINTING')
        lifecycle.transition_print_request(print_request.pk, self.maker, 'COMPLETED', final_price=Decimal('27.00'))
        lifecycle.transition_print_request(print_request.pk, self.admin, 'DELIVERED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'DELIVERED')
        self.assertEqual(print_request.quoted_price, Decimal('25.50'))
        self.assertEqual(print_request.final_price, Decimal('27.00'))
        self.assertIsNotNone(print_request.accepted_at)
        self.assertIsNotNone(print_request.started_at)
        self.assertIsNotNone(print_request.completed_at)
        self.assertIsNotNone(print_request.delivered_at)
        self.assertLessEqual(print_request.accepted_at, print_request.started_at)
        self.assertLessEqual(print_request.started_at, print_request.completed_at)
        self.assertLessEqual(print_request.completed_at, print_request.delivered_at)

    def test_transition_outside_table_leaves_row_unchanged(self):
        print_request = self._create_request()

        with self.assertRaises(InvalidTransition) as ctx:
            lifecycle.transition_print_request(print_request.pk, self.admin, 'COMPLETED')

        self.assertEqual(str(ctx.exception.detail), 'Invalid status transition from REQUESTED to COMPLETED')
        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'REQUESTED')
        self.assertIsNone(print_request.completed_at)

    def test_terminal_states_reject_every_target(self):
        for terminal in ('DELIVERED', 'CANCELLED', 'REJECTED'):
            print_request = self._create_request(status=terminal)
            for target in ('ACCEPTED', 'PRINTING', 'COMPLETED', 'DELIVERED', 'CANCELLED', 'REJECTED'):
                with self.subTest(terminal=terminal, target=target):
                    with self.assertRaises(InvalidTransition):
                        lifecycle.transition_print_request(print_request.pk, self.admin, target)

    def test_repeating_a_transition_fails(self):
        print_request = self._create_request()
        lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED')

        with self.assertRaises(InvalidTransition):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED')

    def test_missing_request(self):
        with self.assertRaisesMessage(NotFound, 'Print request not found'):
            lifecycle.transition_print_request(424242, self.admin, 'ACCEPTED')


class TransitionAuthorizationTests(LifecycleTestBase):

    def test_customer_cannot_accept(self):
        print_request = self._create_request()

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.customer, 'ACCEPTED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'REQUESTED')

    def test_customer_on_completed_request_gets_invalid_transition(self):
        print_request = self._create_request(status='COMPLETED')

        with self.assertRaises(InvalidTransition):
            lifecycle.transition_print_request(print_request.pk, self.customer, 'ACCEPTED')

    def test_customer_can_cancel_while_requested(self):
        print_request = self._create_request()

        lifecycle.transition_print_request(print_request.pk, self.customer, 'CANCELLED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'CANCELLED')

    def test_customer_cannot_cancel_once_accepted(self):
        print_request = self._create_request(status='ACCEPTED')

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.customer, 'CANCELLED')

    def test_other_customer_is_forbidden(self):
        print_request = self._create_request()

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.other_customer, 'CANCELLED')

    def test_unassigned_maker_is_forbidden(self):
        print_request = self._create_request()

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.other_maker, 'ACCEPTED')

    def test_maker_can_reject(self):
        print_request = self._create_request()

        lifecycle.transition_print_request(print_request.pk, self.maker, 'REJECTED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'REJECTED')

    def test_maker_cannot_mark_delivered(self):
        print_request = self._create_request(status='COMPLETED')

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'DELIVERED')

    def test_maker_cannot_cancel(self):
        print_request = self._create_request(status='PRINTING')

        with self.assertRaises(PermissionDenied):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'CANCELLED')

    def test_admin_can_cancel_printing_request(self):
        print_request = self._create_request(status='PRINTING')

        lifecycle.transition_print_request(print_request.pk, self.admin, 'CANCELLED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'CANCELLED')


class TransitionSideEffectTests(LifecycleTestBase):

    def test_completion_increments_maker_counter_once(self):
        print_request = self._create_request(status='PRINTING')

        lifecycle.transition_print_request(print_request.pk, self.maker, 'COMPLETED')
        lifecycle.transition_print_request(print_request.pk, self.admin, 'DELIVERED')

        self.assertEqual(MakerProfile.objects.get(user=self.maker).completed_prints, 1)

    def test_failed_transition_does_not_touch_counter(self):
        print_request = self._create_request(status='ACCEPTED')

        with self.assertRaises(InvalidTransition):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'COMPLETED')

        self.assertEqual(MakerProfile.objects.get(user=self.maker).completed_prints, 0)

    def test_counter_failure_rolls_back_status(self):
        print_request = self._create_request(status='PRINTING')

        with mock.patch('core.lifecycle.F', side_effect=DatabaseError('disk I/O error')):
            with self.assertRaises(DatabaseError):
                lifecycle.transition_print_request(print_request.pk, self.maker, 'COMPLETED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'PRINTING')
        self.assertIsNone(print_request.completed_at)
        self.assertEqual(MakerProfile.objects.get(user=self.maker).completed_prints, 0)

    def test_notes_are_saved(self):
        print_request = self._create_request()

        lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED', notes='Ready on Friday')

        print_request.refresh_from_db()
        self.assertEqual(print_request.notes, 'Ready on Friday')

    def test_acceptance_emails_customer_with_quote(self):
        print_request = self._create_request()

        with self.captureOnCommitCallbacks(execute=True):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED', quoted_price=Decimal('12.00'))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.customer.email])
        self.assertIn('Accepted', mail.outbox[0].subject)
        self.assertIn('12.00', mail.outbox[0].body)

    def test_completion_emails_customer(self):
        print_request = self._create_request(status='PRINTING')

        with self.captureOnCommitCallbacks(execute=True):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'COMPLETED')

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.customer.email])
        self.assertIn('Complete', mail.outbox[0].subject)

    def test_rejection_sends_no_email(self):
        print_request = self._create_request()

        with self.captureOnCommitCallbacks(execute=True):
            lifecycle.transition_print_request(print_request.pk, self.maker, 'REJECTED')

        self.assertEqual(len(mail.outbox), 0)

    def test_email_failure_does_not_undo_transition(self):
        print_request = self._create_request()

        with mock.patch('core.notifications.EmailMultiAlternatives.send', side_effect=SMTPException('down')):
            with self.captureOnCommitCallbacks(execute=True):
                lifecycle.transition_print_request(print_request.pk, self.maker, 'ACCEPTED')

        print_request.refresh_from_db()
        self.assertEqual(print_request.status, 'ACCEPTED')


class DeletePrintRequestTests(LifecycleTestBase):

    def test_customer_deletes_own_requested_request(self):
        print_request = self._create_request()

        lifecycle.delete_print_request(print_request.pk, self.customer)

        self.assertFalse(PrintRequest.objects.filter(pk=print_request.pk).exists())

    def test_customer_cannot_delete_accepted_request(self):
        print_request = self._create_request(status='ACCEPTED')

        with self.assertRaisesMessage(PermissionDenied, 'Cannot delete this request'):
            lifecycle.delete_print_request(print_request.pk, self.customer)

    def test_maker_cannot_delete(self):
        print_request = self._create_request()

        with self.assertRaises(PermissionDenied):
            lifecycle.delete_print_request(print_request.pk, self.maker)

    def test_admin_deletes_any_request(self):
        print_request = self._create_request(status='PRINTING')

        lifecycle.delete_print_request(print_request.pk, self.admin)

        self.assertFalse(PrintRequest.objects.filter(pk=print_request.pk).exists())


class QueueAndStatsTests(LifecycleTestBase):

    def test_maker_queue_orders_by_urgency_then_age(self):
        low = self._create_request(urgency='Low')
        high = self._create_request(urgency='High')
        normal = self._create_request(urgency='Normal')
        second_high = self._create_request(urgency='High')
        self._create_request(status='COMPLETED', urgency='High')

        queue = list(lifecycle.maker_queue(self.maker))

        self.assertEqual([pr.pk for pr in queue], [high.pk, second_high.pk, normal.pk, low.pk])

    def test_maker_queue_status_filter(self):
        self._create_request()
        completed = self._create_request(status='COMPLETED')

        queue = list(lifecycle.maker_queue(self.maker, status='COMPLETED'))

        self.assertEqual([pr.pk for pr in queue], [completed.pk])

    def test_status_overview_is_scoped_to_caller(self):
        self._create_request()
        self._create_request(status='PRINTING')
        PrintRequest.objects.create(
            model=self.listing, customer=self.other_customer, maker=self.other_maker, material='PLA'
        )

        customer_stats = lifecycle.status_overview(self.customer)
        admin_stats = lifecycle.status_overview(self.admin)

        self.assertEqual(customer_stats['total'], 2)
        self.assertEqual(customer_stats['requested'], 1)
        self.assertEqual(customer_stats['printing'], 1)
        self.assertEqual(customer_stats['delivered'], 0)
        self.assertEqual(admin_stats['total'], 3)


class ConcurrentTransitionTests(TransactionTestCase):
    """Racing transitions on one request queue behind the row lock."""

    def setUp(self):
        self.customer = create_customer()
        self.maker = create_maker()
        self.listing = create_listing()
        self.print_request = PrintRequest.objects.create(
            model=self.listing, customer=self.customer, maker=self.maker, material='PLA'
        )

    def test_second_transition_sees_committed_state(self):
        barrier = threading.Barrier(2)
        results = {}
        real_check = lifecycle.check_transition_allowed

        def slow_check(*args, **kwargs):
            real_check(*args, **kwargs)
            # Hold the lock long enough for the other thread to queue
            time.sleep(0.3)

        def move(target_status):
            try:
                barrier.wait(timeout=5)
                lifecycle.transition_print_request(self.print_request.pk, self.maker, target_status)
                results[target_status] = 'ok'
            except InvalidTransition:
                results[target_status] = 'invalid'
            except Exception as e:
                results[target_status] = f'{type(e).__name__}: {e}'
            finally:
                connection.close()

        with mock.patch('core.lifecycle.check_transition_allowed', side_effect=slow_check):
            threads = [threading.Thread(target=move, args=(target,)) for target in ('ACCEPTED', 'REJECTED')]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(sorted(results.values()), ['invalid', 'ok'])

        self.print_request.refresh_from_db()
        winner = next(target for target, outcome in results.items() if outcome == 'ok')
        self.assertEqual(self.print_request.status, winner)
