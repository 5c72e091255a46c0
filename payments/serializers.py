from rest_framework import serializers

from .models import PaymentTransaction


class AddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=160)
    number = serializers.CharField(max_length=20)
    complement = serializers.CharField(max_length=80, required=False, allow_blank=True, default="")
    district = serializers.CharField(max_length=80)
    postal_code = serializers.CharField(max_length=9)
    city = serializers.CharField(max_length=80)
    state = serializers.CharField(min_length=2, max_length=2)


class ChargeSerializer(serializers.Serializer):
    """Buyer-side data for charging an order placed at checkout.

    Guests prove ownership with the e-mail used at checkout.
    """

    email = serializers.EmailField(required=False)
    sender_hash = serializers.CharField(required=False, allow_blank=True, default="", max_length=200)
    card_token = serializers.CharField(required=False, allow_blank=True, default="", max_length=200)
    cpf = serializers.CharField(required=False, allow_blank=True, default="", max_length=14)
    holder_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=120)
    birth_date = serializers.CharField(required=False, allow_blank=True, default="", max_length=10)
    address = AddressSerializer(required=False)


class PaymentTransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source="order.number", read_only=True)

    class Meta:
        model = PaymentTransaction
        fields = [
            "id",
            "order",
            "order_number",
            "code",
            "method",
            "amount",
            "status",
            "gateway_status",
            "payment_link",
            "qr_code",
            "emv",
            "created_at",
        ]
        read_only_fields = fields
