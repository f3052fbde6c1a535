"""
HTTP API tests through the Flask test client.
"""

import json

from pos_backend.models import Product


def _sale_body(**extra):
    body = {
        'items': [
            {'productId': 'prod-a', 'quantity': 2, 'unitPrice': '10.00'},
            {'productId': 'prod-b', 'quantity': 3, 'unitPrice': '5.00'},
        ],
    }
    body.update(extra)
    return body


class TestSalesApi:

    def test_create_sale(self, client, session, product_a, product_b):
        response = client.post('/api/sales', json=_sale_body(discount=5, discountType='percent', amountPaid=40))

        assert response.status_code == 201
        data = response.get_json()
        assert data['subtotal'] == '35.00'
        assert data['discount'] == '1.75'
        assert data['total'] == '33.25'
        assert data['amountPaid'] == '33.25'
        assert data['changeDue'] == '6.75'
        assert data['paymentStatus'] == 'Paid'
        assert data['paymentMethod'] == 'Cash'
        assert data['items'][0] == {
            'productId': 'prod-a',
            'productName': 'Rice 1kg',
            'quantity': 2,
            'unitPrice': '10.00',
            'lineTotal': '20.00',
        }

    def test_insufficient_stock_payload(self, client, make_product):
        make_product('Milk', 2, '1.50', id='prod-milk')

        response = client.post('/api/sales', json={
            'items': [{'productId': 'prod-milk', 'quantity': 3, 'unitPrice': '1.50'}],
        })

        assert response.status_code == 409
        data = response.get_json()
        assert data['status'] == 'error'
        assert data['code'] == 'InsufficientStock'
        assert data['productId'] == 'prod-milk'
        assert data['available'] == 2
        assert data['requested'] == 3

    def test_empty_cart(self, client):
        response = client.post('/api/sales', json={'items': []})

        assert response.status_code == 400
        assert response.get_json()['code'] == 'EmptyCart'

    def test_credit_requires_customer(self, client, product_a, product_b):
        response = client.post('/api/sales', json=_sale_body(amountPaid=20))

        assert response.status_code == 400
        data = response.get_json()
        assert data['code'] == 'CreditRequiresCustomer'
        assert data['balance'] == '15.00'

    def test_unknown_product(self, client):
        response = client.post('/api/sales', json={
            'items': [{'productId': 'prod-nope', 'quantity': 1, 'unitPrice': '1.00'}],
        })

        assert response.status_code == 404
        assert response.get_json()['code'] == 'ProductNotFound'

    def test_idempotent_replay(self, client, product_a, product_b):
        first = client.post('/api/sales', json=_sale_body(idempotencyKey='till-1-0001'))
        second = client.post('/api/sales', json=_sale_body(idempotencyKey='till-1-0001'))

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.get_json()['id'] == first.get_json()['id']

    def test_keys_sharing_a_long_prefix_are_not_replays(self, client, session, product_a, product_b):
        prefix = 'till-7-' + 'x' * 60

        first = client.post('/api/sales', json=_sale_body(idempotencyKey=prefix + 'A'))
        second = client.post('/api/sales', json=_sale_body(idempotencyKey=prefix + 'B'))

        assert first.status_code == 400
        assert first.get_json()['code'] == 'InvalidItem'
        assert second.status_code == 400
        session.expire_all()
        assert session.get(Product, 'prod-a').quantity == 20
        assert client.get('/api/sales').get_json()['pagination']['total'] == 0

    def test_get_list_and_delete(self, client, session, customer, product_a, product_b):
        created = client.post('/api/sales', json=_sale_body(customerId='cust-1', amountPaid=0)).get_json()
        assert created['paymentStatus'] == 'Credit'

        detail = client.get(f"/api/sales/{created['id']}")
        assert detail.status_code == 200
        assert detail.get_json()['balance'] == '35.00'

        listing = client.get('/api/sales?customerId=cust-1').get_json()
        assert [s['id'] for s in listing['sales']] == [created['id']]
        assert listing['pagination']['total'] == 1

        deleted = client.delete(f"/api/sales/{created['id']}")
        assert deleted.status_code == 200

        session.expire_all()
        assert session.get(Product, 'prod-a').quantity == 20
        assert client.get(f"/api/sales/{created['id']}").status_code == 404

    def test_record_payment(self, client, customer, product_a):
        created = client.post('/api/sales', json={
            'items': [{'productId': 'prod-a', 'quantity': 1, 'unitPrice': '10.00'}],
            'customerId': 'cust-1',
            'paymentStatus': 'Credit',
        }).get_json()

        response = client.post(f"/api/sales/{created['id']}/payments", json={'amount': '10.00'})

        assert response.status_code == 200
        assert response.get_json()['paymentStatus'] == 'Paid'

    def test_bad_date_filter(self, client):
        response = client.get('/api/sales?startDate=yesterday')
        assert response.status_code == 400


class TestCatalogApi:

    def test_create_update_and_adjust(self, client):
        created = client.post('/api/products', json={
            'name': 'Beans', 'category': 'Dry', 'quantity': 4,
            'buyPrice': '0.80', 'sellPrice': '1.20', 'expiryDate': '2030-01-31',
        })
        assert created.status_code == 201
        product_id = created.get_json()['id']
        assert created.get_json()['lowStockThreshold'] == 5

        updated = client.put(f'/api/products/{product_id}', json={'sellPrice': '1.50'})
        assert updated.get_json()['sellPrice'] == '1.50'

        adjusted = client.put(f'/api/products/{product_id}/stock', json={'quantity': 12})
        assert adjusted.get_json()['quantity'] == 12

        received = client.post(f'/api/products/{product_id}/receipts', json={'quantity': 3})
        assert received.get_json()['quantity'] == 15

        detail = client.get(f'/api/products/{product_id}?moves=1').get_json()
        assert [m['type'] for m in detail['moves']] == ['RECEIPT', 'ADJUSTMENT', 'ADJUSTMENT']

    def test_list_filters(self, client, make_product):
        make_product('Apple Juice', 5, '2.00', category='Drinks')
        make_product('Orange Juice', 5, '2.00', category='Drinks')
        make_product('Bread', 5, '1.00', category='Bakery')

        drinks = client.get('/api/products?category=Drinks').get_json()
        assert [p['name'] for p in drinks['products']] == ['Apple Juice', 'Orange Juice']

        search = client.get('/api/products?search=bread').get_json()
        assert [p['name'] for p in search['products']] == ['Bread']

    def test_delete_sold_product_refused(self, client, product_a):
        client.post('/api/sales', json={'items': [{'productId': 'prod-a', 'quantity': 1, 'unitPrice': '10.00'}]})

        response = client.delete('/api/products/prod-a')

        assert response.status_code == 409
        assert response.get_json()['code'] == 'BusinessRule'

    def test_quantity_not_editable_through_update(self, client, product_a):
        response = client.put('/api/products/prod-a', json={'quantity': 99})
        assert response.status_code == 400

    def test_missing_product(self, client):
        response = client.get('/api/products/prod-none')
        assert response.status_code == 404
        assert response.get_json()['code'] == 'ProductNotFound'


class TestCustomersAndInventoryApi:

    def test_customer_balance(self, client, product_a):
        created = client.post('/api/customers', json={'name': 'Kwame Mensah'})
        assert created.status_code == 201
        customer_id = created.get_json()['id']

        client.post('/api/sales', json={
            'items': [{'productId': 'prod-a', 'quantity': 2, 'unitPrice': '10.00'}],
            'customerId': customer_id,
            'amountPaid': 5,
        })

        detail = client.get(f'/api/customers/{customer_id}').get_json()
        assert detail['balance'] == '15.00'

        listing = client.get('/api/customers').get_json()
        assert [c['id'] for c in listing['customers']] == [customer_id]

    def test_stock_alerts(self, client, make_product):
        make_product('Empty', 0, '1.00', id='prod-empty')

        response = client.get('/api/inventory/alerts')

        assert response.status_code == 200
        data = response.get_json()
        assert [p['id'] for p in data['outOfStock']] == ['prod-empty']
        assert data['counts']['lowStock'] == 1

    def test_health_and_metrics(self, client, product_a):
        assert client.get('/health').get_json()['database'] is True

        client.post('/api/sales', json={'items': []})
        body = client.get('/metrics').get_data(as_text=True)
        assert 'pos_sale_failures_total' in body
        assert 'http_requests_total' in body

    def test_unknown_route_is_json(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'


    def test_update_delete_and_sales_of_customer(self, client, product_a):
        customer_id = client.post('/api/customers', json={'name': 'Kwame Mensah'}).get_json()['id']

        updated = client.put(f'/api/customers/{customer_id}', json={'phone': '0811111111'})
        assert updated.status_code == 200
        assert updated.get_json()['phone'] == '0811111111'
        assert updated.get_json()['name'] == 'Kwame Mensah'

        blank = client.put(f'/api/customers/{customer_id}', json={'name': '  '})
        assert blank.status_code == 400

        sale = client.post('/api/sales', json={
            'items': [{'productId': 'prod-a', 'quantity': 1, 'unitPrice': '10.00'}],
            'customerId': customer_id,
        }).get_json()
        sales = client.get(f'/api/customers/{customer_id}/sales').get_json()
        assert [s['id'] for s in sales['sales']] == [sale['id']]

        refused = client.delete(f'/api/customers/{customer_id}')
        assert refused.status_code == 409

        client.delete(f"/api/sales/{sale['id']}")
        assert client.delete(f'/api/customers/{customer_id}').status_code == 200
        assert client.get(f'/api/customers/{customer_id}').status_code == 404
        assert client.get(f'/api/customers/{customer_id}/sales').get_json()['code'] == 'CustomerNotFound'

    def test_audit_log_endpoint(self, client, product_a):
        created = client.post('/api/sales', json={
            'items': [{'productId': 'prod-a', 'quantity': 2, 'unitPrice': '10.00'}],
        }).get_json()

        response = client.get(f"/api/audit-logs?resourceType=sale&resourceId={created['id']}")

        assert response.status_code == 200
        entries = response.get_json()['entries']
        assert [e['action'] for e in entries] == ['SALE_CREATED']
        assert entries[0]['details']['total'] == '20.00'
        assert client.get('/api/audit-logs?action=NOT_AN_ACTION').status_code == 400


class TestSuppliersAndPurchaseOrdersApi:

    def test_supplier_detail_update_products_and_delete(self, client, supplier, make_product):
        make_product('Rice 5kg', 4, '40.00', id='prod-rice5', supplier_id='supp-1')

        assert client.get('/api/suppliers/supp-1').get_json()['name'] == 'Lagos Grains Ltd'

        updated = client.put('/api/suppliers/supp-1', json={'email': 'orders@lagosgrains.example'})
        assert updated.get_json()['email'] == 'orders@lagosgrains.example'

        products = client.get('/api/suppliers/supp-1/products').get_json()['products']
        assert [p['id'] for p in products] == ['prod-rice5']

        refused = client.delete('/api/suppliers/supp-1')
        assert refused.status_code == 409

        client.put('/api/products/prod-rice5', json={'supplierId': None})
        assert client.delete('/api/suppliers/supp-1').status_code == 200
        missing = client.get('/api/suppliers/supp-1')
        assert missing.status_code == 404
        assert missing.get_json()['code'] == 'SupplierNotFound'

    def test_order_and_receive(self, client, session, supplier, product_a):
        created = client.post('/api/purchase-orders', json={
            'supplierId': 'supp-1',
            'items': [{'productId': 'prod-a', 'quantity': 12, 'unitCost': '6.25'}],
        })
        assert created.status_code == 201
        order = created.get_json()
        assert order['status'] == 'PENDING'
        assert order['totalAmount'] == '75.00'
        assert order['supplierName'] == 'Lagos Grains Ltd'
        assert order['items'][0]['productName'] == 'Rice 1kg'

        received = client.post(f"/api/purchase-orders/{order['id']}/receive")
        assert received.status_code == 200
        assert received.get_json()['status'] == 'RECEIVED'
        session.expire_all()
        assert session.get(Product, 'prod-a').quantity == 32

        again = client.post(f"/api/purchase-orders/{order['id']}/receive")
        assert again.status_code == 409
        assert again.get_json()['orderStatus'] == 'RECEIVED'

        listing = client.get('/api/purchase-orders?status=received').get_json()
        assert [o['id'] for o in listing['orders']] == [order['id']]

        stats = client.get('/api/purchase-orders/stats').get_json()
        assert stats['receivedOrders'] == 1
        assert stats['totalValue'] == '75.00'

        assert client.delete(f"/api/purchase-orders/{order['id']}").status_code == 409
        assert client.get('/api/purchase-orders/po-missing').status_code == 404
        assert client.get('/api/purchase-orders?status=shipped').status_code == 400

class TestCli:

    def test_stock_alerts_command(self, app, make_product):
        make_product('Empty', 0, '1.00', id='prod-empty')

        result = app.test_cli_runner().invoke(args=['stock-alerts', '--horizon-days', '7'])

        assert result.exit_code == 0, result.output
        assert [p['id'] for p in json.loads(result.stdout)['outOfStock']] == ['prod-empty']
