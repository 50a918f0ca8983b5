import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("teams", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Auction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("item_name", models.CharField(max_length=200, verbose_name="拍品名称")),
                ("item_description", models.TextField(blank=True, verbose_name="拍品描述")),
                ("item_image_url", models.URLField(blank=True, max_length=500, verbose_name="拍品图片")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "未开始"),
                            ("active", "进行中"),
                            ("ended", "已结束"),
                            ("cancelled", "已取消"),
                        ],
                        default="pending",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("starting_price", models.PositiveIntegerField(default=0, verbose_name="起拍价")),
                ("min_bid_increment", models.PositiveIntegerField(default=10, verbose_name="最小加价幅度")),
                ("current_price", models.PositiveIntegerField(default=0, verbose_name="当前价格")),
                ("points_for_win", models.PositiveIntegerField(default=100, verbose_name="获胜积分")),
                ("bid_count", models.PositiveIntegerField(default=0, verbose_name="出价次数")),
                ("winning_amount", models.PositiveIntegerField(blank=True, null=True, verbose_name="成交价")),
                ("started_at", models.DateTimeField(blank=True, null=True, verbose_name="开始时间")),
                ("ended_at", models.DateTimeField(blank=True, null=True, verbose_name="结束时间")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="创建人",
                    ),
                ),
                (
                    "winning_team",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="won_auctions",
                        to="teams.team",
                        verbose_name="获胜队伍",
                    ),
                ),
                (
                    "winning_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="获胜出价人",
                    ),
                ),
            ],
            options={
                "verbose_name": "拍卖",
                "verbose_name_plural": "拍卖",
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_price__gte", models.F("starting_price"))),
                        name="auction_price_not_below_start",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("min_bid_increment__gte", 1)),
                        name="auction_increment_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Bid",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.PositiveIntegerField(verbose_name="出价")),
                ("is_leading", models.BooleanField(default=False, verbose_name="领先")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="出价时间")),
                (
                    "auction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bids",
                        to="auctions.auction",
                        verbose_name="拍卖",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="auction_bids",
                        to="teams.team",
                        verbose_name="队伍",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="auction_bids",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="出价人",
                    ),
                ),
            ],
            options={
                "verbose_name": "出价",
                "verbose_name_plural": "出价",
                "ordering": ["-amount", "-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_leading", True)),
                        fields=("auction",),
                        name="bid_single_leader",
                    ),
                ],
            },
        ),
    ]
