import json
import types
from decimal import Decimal

import pytest
from django.urls import reverse

from finance.models import ShiftSettlement
from inventory import ledger
from inventory.models import InventoryItem, MenuItem
from orders.models import Order, OrderStatus
from orders.voice import VoiceOrderResolver


def add(api_client, unit, source, item, **extra):
    url = reverse('cart-add', kwargs={'unit': unit, 'source_id': source})
    return api_client.post(url, {'menu_item_id': item.pk, **extra}, format='json')


@pytest.mark.django_db
def test_cart_round_trip_through_the_session(api_client, dal, naan):
    add(api_client, 'restaurant', 'T1', dal)
    add(api_client, 'restaurant', 'T1', dal)
    response = add(api_client, 'restaurant', 'T1', naan, quantity=2)

    assert response.status_code == 200
    assert response.data['item_count'] == 4
    assert response.data['total'] == '530.00'

    other_table = api_client.get(reverse('cart-detail', kwargs={'unit': 'RESTAURANT', 'source_id': 'T2'}))
    assert other_table.data['lines'] == []

    removed = api_client.post(
        reverse('cart-remove', kwargs={'unit': 'RESTAURANT', 'source_id': 'T1'}),
        {'key': str(dal.pk), 'policy': 'decrement'}, format='json',
    )
    assert removed.data['item_count'] == 3


@pytest.mark.django_db
def test_cart_rejects_unknown_unit_and_pour(api_client, rum):
    assert add(api_client, 'spa', 'T1', rum).status_code == 400

    response = add(api_client, 'bar', 'counter', rum, variant='45ml')
    assert response.status_code == 400
    assert response.data['error'] is True
    assert 'variant' in response.data['details']


@pytest.mark.django_db
def test_checkout_preview_adds_tax_on_request(api_client, dal):
    add(api_client, 'restaurant', 'T1', dal)
    url = reverse('cart-checkout', kwargs={'unit': 'restaurant', 'source_id': 'T1'})

    assert api_client.get(url).data['grand_total'] == '220.00'
    taxed = api_client.get(url, {'tax': 'true'}).data
    assert taxed['tax'] == '11'
    assert taxed['grand_total'] == '231.00'


@pytest.mark.django_db
def test_place_order_then_walk_it_through_the_kitchen(api_client, dal):
    add(api_client, 'restaurant', 'T7', dal)
    placed = api_client.post(
        reverse('cart-place-order', kwargs={'unit': 'restaurant', 'source_id': 'T7'}),
        {'payment_method': 'CASH'}, format='json',
    )
    assert placed.status_code == 201
    assert placed.data['status'] == OrderStatus.INCOMING
    assert placed.data['total_amount'] == '220.00'
    order_id = placed.data['id']

    cart = api_client.get(reverse('cart-detail', kwargs={'unit': 'restaurant', 'source_id': 'T7'}))
    assert cart.data['lines'] == []

    kitchen = api_client.get(reverse('kitchen-display')).data
    assert [ticket['source_id'] for ticket in kitchen] == ['T7']
    assert kitchen[0]['is_late'] is False

    status_url = reverse('order-status', kwargs={'pk': order_id})
    skipped = api_client.post(status_url, {'status': 'PICKED_UP'}, format='json')
    assert skipped.status_code == 409
    assert skipped.data['code'] == 'illegal_transition'

    moved = api_client.post(status_url, {'status': 'PREPARING', 'source': 'kitchen'}, format='json')
    assert moved.status_code == 200
    assert moved.data['status'] == OrderStatus.PREPARING

    receipt = api_client.get(reverse('order-receipt', kwargs={'pk': order_id}), {'tax': '1'}).data
    assert receipt['items'][0]['name'] == 'Dal Makhani'
    assert receipt['grand_total'] == '231.00'


@pytest.mark.django_db
def test_placing_an_empty_cart_fails(api_client):
    response = api_client.post(
        reverse('cart-place-order', kwargs={'unit': 'bar', 'source_id': 'counter'}), {}, format='json'
    )
    assert response.status_code == 400
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_order_list_filters(api_client, dal, rum):
    add(api_client, 'restaurant', 'T1', dal)
    api_client.post(reverse('cart-place-order', kwargs={'unit': 'restaurant', 'source_id': 'T1'}), format='json')
    add(api_client, 'bar', 'counter', rum, variant='30ml')
    api_client.post(reverse('cart-place-order', kwargs={'unit': 'bar', 'source_id': 'counter'}), format='json')

    bar_orders = api_client.get(reverse('order-list'), {'business_unit': 'BAR'}).data
    assert [o['source_kind'] for o in bar_orders] == ['BAR']
    ready = api_client.get(reverse('order-list'), {'status': 'READY'}).data
    assert len(ready) == 1


@pytest.mark.django_db
def test_menu_listing_and_replacement(api_client, dal, naan, rum):
    url = reverse('menu-list', kwargs={'unit': 'restaurant'})
    assert sorted(item['name'] for item in api_client.get(url).data) == ['Butter Naan', 'Dal Makhani']

    response = api_client.put(url, [
        {'id': dal.pk, 'name': 'Dal Makhani', 'price': '230.00'},
        {'name': 'Lassi', 'price': '80.00', 'category': 'drink'},
    ], format='json')
    assert response.status_code == 200

    naan.refresh_from_db()
    assert naan.is_available is False
    available = api_client.get(url, {'is_available': 'true'}).data
    assert sorted(item['name'] for item in available) == ['Dal Makhani', 'Lassi']


@pytest.mark.django_db
def test_menu_replacement_validates_pour_prices(api_client, rum):
    url = reverse('menu-list', kwargs={'unit': 'bar'})
    response = api_client.put(url, [{'id': rum.pk, 'name': 'Old Monk', 'price': '100', 'variant_prices': {'45ml': 50}}],
                              format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_inventory_transfer_conflict(api_client):
    item = ledger.create_item(InventoryItem.Tier.RAW, 'Paneer', Decimal('3'), 'kg')
    url = reverse('inventory-item-transfer', kwargs={'pk': item.pk})

    response = api_client.post(url, {'amount': '5', 'target_tier': 'KITCHEN'}, format='json')
    assert response.status_code == 409
    assert response.data['code'] == 'insufficient_stock'

    response = api_client.post(url, {'amount': '2', 'target_tier': 'KITCHEN'}, format='json')
    assert response.status_code == 200
    assert response.data['source']['quantity'] == '1.00'
    assert response.data['target']['tier'] == 'KITCHEN'


@pytest.mark.django_db
def test_inventory_create_use_and_history(api_client):
    created = api_client.post(reverse('inventory-item-list-create'), {
        'tier': 'KITCHEN', 'name': 'Ghee', 'quantity': '1.5', 'unit': 'kg', 'min_threshold': '1',
    }, format='json')
    assert created.status_code == 201
    pk = created.data['id']

    used = api_client.post(reverse('inventory-item-use', kwargs={'pk': pk}), {'amount': '4'}, format='json')
    assert used.data['quantity'] == '0.00'
    assert used.data['is_low'] is True

    history = api_client.get(reverse('inventory-item-history', kwargs={'pk': pk})).data
    assert [entry['action'] for entry in history] == ['USED', 'CREATE']

    low = api_client.get(reverse('low-stock')).data
    assert [entry['name'] for entry in low['inventory']] == ['Ghee']


@pytest.mark.django_db
def test_unknown_rows_are_404(api_client):
    response = api_client.post(reverse('inventory-item-top-up', kwargs={'pk': 999}), {'amount': '1'}, format='json')
    assert response.status_code == 404


@pytest.mark.django_db
def test_shift_close_with_variance_goes_through_the_gate(api_client, rum, settings):
    settings.VENUE = {**settings.VENUE, 'MANAGER_PIN': '2468'}
    add(api_client, 'bar', 'counter', rum, variant='60ml')
    api_client.post(reverse('cart-place-order', kwargs={'unit': 'bar', 'source_id': 'counter'}),
                    {'payment_method': 'CASH'}, format='json')

    summary = api_client.get(reverse('shift-summary', kwargs={'unit': 'bar'}), {'counted_cash': '150'}).data
    assert summary['totals']['cash_expected'] == '200.00'
    assert summary['variance'] == '-50.00'

    pending = api_client.post(reverse('shift-close', kwargs={'unit': 'bar'}), {'counted_cash': '150'}, format='json')
    assert pending.status_code == 202
    assert pending.data['state'] == 'PROMPTED'
    authorize_url = reverse('close-request-authorize', kwargs={'pk': pending.data['id']})

    denied = api_client.post(authorize_url, {'pin': '0000', 'reason': 'Tip jar'}, format='json')
    assert denied.status_code == 403
    assert denied.data['code'] == 'authorization_denied'
    assert ShiftSettlement.objects.count() == 0

    closed = api_client.post(authorize_url, {'pin': '2468', 'reason': 'Change given from till'}, format='json')
    assert closed.status_code == 201
    assert closed.data['variance'] == '-50.00'
    assert closed.data['note'] == 'Change given from till'

    history = api_client.get(reverse('settlement-history', kwargs={'unit': 'bar'})).data
    assert len(history) == 1


@pytest.mark.django_db
def test_exact_close_and_cancelled_gate(api_client, rum):
    add(api_client, 'bar', 'counter', rum, variant='30ml')
    api_client.post(reverse('cart-place-order', kwargs={'unit': 'bar', 'source_id': 'counter'}),
                    {'payment_method': 'CASH'}, format='json')

    pending = api_client.post(reverse('shift-close', kwargs={'unit': 'bar'}), {'counted_cash': '90'}, format='json')
    cancelled = api_client.delete(reverse('close-request-detail', kwargs={'pk': pending.data['id']}))
    assert cancelled.status_code == 204

    exact = api_client.post(reverse('shift-close', kwargs={'unit': 'bar'}), {'counted_cash': '100'}, format='json')
    assert exact.status_code == 201
    assert exact.data['note'] == 'Exact Match - Auto Verified'


class FakeAsyncCompletions:
    def __init__(self, content):
        self.content = content

    async def create(self, **kwargs):
        message = types.SimpleNamespace(content=self.content)
        return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


def fake_resolver(content):
    client = types.SimpleNamespace(chat=types.SimpleNamespace(completions=FakeAsyncCompletions(content)))
    return VoiceOrderResolver(async_client=client)


@pytest.mark.django_db
def test_voice_order_fills_the_cart(api_client, monkeypatch, rum, beer):
    reply = json.dumps({'items': [{'id': str(beer.pk), 'quantity': 2}]})
    monkeypatch.setattr('orders.views.get_resolver', lambda **kwargs: fake_resolver(reply))

    response = api_client.post(
        reverse('cart-voice-order', kwargs={'unit': 'bar', 'source_id': 'counter'}),
        {'transcript': 'two kingfisher bottles'}, format='json',
    )
    assert response.status_code == 200
    body = response.json()
    assert body['added'] == [f'{beer.pk}-Btl']
    assert body['cart']['total'] == '360.00'

    cart = api_client.get(reverse('cart-detail', kwargs={'unit': 'bar', 'source_id': 'counter'}))
    assert cart.data['item_count'] == 2


@pytest.mark.django_db
def test_voice_order_that_resolves_nothing(api_client, monkeypatch, rum):
    monkeypatch.setattr('orders.views.get_resolver', lambda **kwargs: fake_resolver('garbage'))

    response = api_client.post(
        reverse('cart-voice-order', kwargs={'unit': 'bar', 'source_id': 'counter'}),
        {'transcript': 'something unclear'}, format='json',
    )
    assert response.status_code == 200
    assert response.json()['message'] == 'Could not understand'
    assert response.json()['cart']['lines'] == []


@pytest.mark.django_db
def test_admin_overview_reads_every_unit(api_client, dal, rum):
    add(api_client, 'restaurant', 'T1', dal)
    api_client.post(reverse('cart-place-order', kwargs={'unit': 'restaurant', 'source_id': 'T1'}),
                    {'payment_method': 'UPI'}, format='json')
    orders_before = Order.objects.count()

    overview = api_client.get(reverse('admin-overview')).json()
    assert [unit['business_unit'] for unit in overview['units']] == ['RESTAURANT', 'BAR', 'LODGING', 'BILLIARDS']
    restaurant = overview['units'][0]
    assert restaurant['today']['orders_count'] == 1
    assert restaurant['order_status'] == {'INCOMING': 1}
    assert restaurant['open_shift']['totals']['other_expected'] == '220.00'
    assert [item['name'] for item in overview['units'][1]['low_stock']['menu_items']] == ['Old Monk']
    assert Order.objects.count() == orders_before
    assert MenuItem.objects.count() == 2

    single = api_client.get(reverse('unit-overview', kwargs={'unit': 'bar'})).json()
    assert single['business_unit'] == 'BAR'
    assert single['open_shift'] is None


@pytest.mark.django_db
def test_inventory_use_rejects_negative_amounts(api_client):
    item = ledger.create_item('KITCHEN', 'Paneer', Decimal('2'), 'kg')

    response = api_client.post(reverse('inventory-item-use', kwargs={'pk': item.pk}), {'amount': '-5'}, format='json')
    assert response.status_code == 400
    assert 'amount' in response.json()['details']

    item.refresh_from_db()
    assert item.quantity == Decimal('2.00')
    assert [log.action for log in ledger.history(item.pk)] == ['CREATE']
