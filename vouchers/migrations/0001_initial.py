from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='VoucherCode',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(editable=False, max_length=32, unique=True)),
                ('voucher_id', models.CharField(help_text='0x-prefixed bytes32, lowercase', max_length=66, unique=True)),
                ('password_hash', models.CharField(blank=True, max_length=256, null=True)),
                ('creator_address', models.CharField(blank=True, db_index=True, max_length=42, null=True)),
                ('amount', models.CharField(blank=True, help_text='uint256 as decimal string', max_length=80, null=True)),
                ('claimed', models.BooleanField(default=False)),
                ('claimed_by', models.CharField(blank=True, db_index=True, max_length=42, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('claim_tx_hash', models.CharField(blank=True, db_index=True, max_length=66, null=True)),
                ('claim_tx_status', models.CharField(blank=True, choices=[('pending', 'Pending'), ('success', 'Success'), ('failed', 'Failed')], max_length=10, null=True)),
                ('claim_tx_submitted_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled', models.BooleanField(default=False)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancel_tx_hash', models.CharField(blank=True, max_length=66, null=True)),
                ('on_chain_created_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('claimed', True), ('cancelled', True), _negated=True),
                        name='voucher_not_claimed_and_cancelled',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='ClaimAttempt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voucher_code', models.CharField(db_index=True, max_length=32)),
                ('ip_address', models.CharField(blank=True, max_length=45, null=True)),
                ('recipient_address', models.CharField(blank=True, max_length=42, null=True)),
                ('success', models.BooleanField(default=False)),
                ('attempted_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-attempted_at'],
                'indexes': [models.Index(fields=['voucher_code', 'attempted_at'], name='claim_attempt_code_time_idx')],
            },
        ),
    ]
